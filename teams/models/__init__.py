from teams.models.team_member import TeamMember, PermissionType
from teams.models.teams import Team
from teams.models.user import User, UserAuth
from teams.models.access import DashboardAcl, TeamRole, Permission
