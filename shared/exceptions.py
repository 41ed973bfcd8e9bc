from enum import Enum


class NotFound(Exception):
    def __init__(self, name: str):
        self.name = name


class TeamErrorKind(str, Enum):
    TEAM_NOT_FOUND = "team_not_found"
    MEMBER_NOT_FOUND = "member_not_found"
    ALREADY_MEMBER = "already_member"
    LAST_ADMIN_PROTECTED = "last_admin_protected"
    TEAM_NAME_TAKEN = "team_name_taken"


class TeamError(Exception):
    """
    Business-rule rejection raised by the team stores.

    Handlers decide what to do by matching on ``kind``. These errors are not
    transient: retrying the same call cannot succeed.
    """

    kind: TeamErrorKind
    default_message = "Team operation rejected"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class TeamNotFound(TeamError):
    kind = TeamErrorKind.TEAM_NOT_FOUND
    default_message = "Team not found"


class MemberNotFound(TeamError):
    kind = TeamErrorKind.MEMBER_NOT_FOUND
    default_message = "Team member not found"


class AlreadyMember(TeamError):
    kind = TeamErrorKind.ALREADY_MEMBER
    default_message = "User is already added to this team"


class LastAdminProtected(TeamError):
    kind = TeamErrorKind.LAST_ADMIN_PROTECTED
    default_message = "Not allowed to remove last admin"


class TeamNameTaken(TeamError):
    kind = TeamErrorKind.TEAM_NAME_TAKEN
    default_message = "Team name taken"
