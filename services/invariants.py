import logging

from sqlalchemy.orm import Session

from shared.exceptions import LastAdminProtected
from teams.models.team_member import TeamMember, PermissionType

logger = logging.getLogger(__name__)


def is_last_admin(db: Session, org_id: int, team_id: int, user_id: int) -> bool:
    """
    True when ``user_id`` is the only ADMIN of the team.

    The admin rows are read with FOR UPDATE so a concurrent demotion or
    removal has to wait for the calling transaction to finish.
    """
    admin_ids = [
        row.user_id for row in db.query(TeamMember.user_id).filter(
            TeamMember.org_id == org_id,
            TeamMember.team_id == team_id,
            TeamMember.permission == PermissionType.ADMIN
        ).with_for_update().all()
    ]

    return len(admin_ids) == 1 and admin_ids[0] == user_id


def ensure_not_last_admin(db: Session, org_id: int, team_id: int, user_id: int) -> None:
    if is_last_admin(db, org_id, team_id, user_id):
        logger.warning("Refusing to drop last admin %s of team %s (org %s)", user_id, team_id, org_id)
        raise LastAdminProtected()
