from sqlalchemy.orm import Session

from shared.access_control import is_org_admin, scopes_for, team_scope
from teams.models.team_member import TeamMember, PermissionType


def has_role(groups: list[str], *roles: str) -> bool:
    return any(role in groups for role in roles)


def has_permission(current_user: dict, action: str, scope: str) -> bool:
    if is_org_admin(current_user):
        return True

    kind = scope.split(":", 1)[0]
    prefix = scope.rsplit(":", 1)[0] + ":"
    accepted = {"*", f"{kind}:*", f"{prefix}*", scope}
    return any(s in accepted for s in scopes_for(current_user, action))


def is_team_admin(db: Session, current_user: dict, team_id: int) -> bool:
    return db.query(TeamMember.id).filter(
        TeamMember.org_id == current_user["org_id"],
        TeamMember.team_id == team_id,
        TeamMember.user_id == current_user["user_id"],
        TeamMember.permission == PermissionType.ADMIN
    ).first() is not None


def can_admin_team(db: Session, current_user: dict, action: str, team_id: int) -> bool:
    """Org admins, holders of ``action`` on the team, and the team's own admins."""
    if has_permission(current_user, action, team_scope(team_id)):
        return True
    return is_team_admin(db, current_user, team_id)
