"""
Reads and writes against the team_member relation.

Every mutation runs inside :func:`shared.database.transaction`, and the
last-admin check of a guarded mutation runs in that same transaction.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session, aliased

from services.invariants import ensure_not_last_admin
from shared.access_control import SQLFilter
from shared.database import transaction
from shared.exceptions import AlreadyMember, MemberNotFound, TeamNotFound
from teams.models.team_member import TeamMember, PermissionType, normalize_permission
from teams.models.teams import Team
from teams.models.user import User, UserAuth

logger = logging.getLogger(__name__)


@dataclass
class TeamMemberDTO:
    org_id: int
    team_id: int
    user_id: int
    email: str
    name: str | None
    login: str
    external: bool
    permission: PermissionType
    auth_module: str | None = None


def team_exists(db: Session, org_id: int, team_id: int) -> bool:
    return db.query(Team.id).filter(Team.org_id == org_id, Team.id == team_id).first() is not None


def ensure_team_exists(db: Session, org_id: int, team_id: int) -> None:
    if not team_exists(db, org_id, team_id):
        raise TeamNotFound()


def get_team_member(db: Session, org_id: int, team_id: int, user_id: int) -> TeamMember:
    member = db.query(TeamMember).filter(
        TeamMember.org_id == org_id,
        TeamMember.team_id == team_id,
        TeamMember.user_id == user_id
    ).first()

    if not member:
        raise MemberNotFound()

    return member


def is_team_member(db: Session, org_id: int, team_id: int, user_id: int) -> bool:
    return db.query(TeamMember.id).filter(
        TeamMember.org_id == org_id,
        TeamMember.team_id == team_id,
        TeamMember.user_id == user_id
    ).first() is not None


def _insert_team_member(db: Session, org_id: int, team_id: int, user_id: int,
                        external: bool, permission) -> TeamMember:
    ensure_team_exists(db, org_id, team_id)

    now = datetime.now(timezone.utc)
    member = TeamMember(
        org_id=org_id,
        team_id=team_id,
        user_id=user_id,
        external=external,
        permission=normalize_permission(permission),
        created=now,
        updated=now
    )
    db.add(member)
    db.flush()

    return member


def _update_team_member(db: Session, org_id: int, team_id: int, user_id: int, permission) -> TeamMember:
    member = get_team_member(db, org_id, team_id, user_id)

    permission = normalize_permission(permission)
    if permission != PermissionType.ADMIN:
        ensure_not_last_admin(db, org_id, team_id, user_id)

    member.permission = permission
    member.updated = datetime.now(timezone.utc)
    db.flush()

    return member


def _remove_team_member(db: Session, org_id: int, team_id: int, user_id: int) -> None:
    ensure_team_exists(db, org_id, team_id)
    ensure_not_last_admin(db, org_id, team_id, user_id)

    deleted = db.query(TeamMember).filter(
        TeamMember.org_id == org_id,
        TeamMember.team_id == team_id,
        TeamMember.user_id == user_id
    ).delete(synchronize_session=False)

    if deleted == 0:
        raise MemberNotFound()


def add_team_member(db: Session, org_id: int, team_id: int, user_id: int,
                    external: bool = False, permission=PermissionType.MEMBER) -> TeamMember:
    with transaction(db):
        if is_team_member(db, org_id, team_id, user_id):
            raise AlreadyMember()

        member = _insert_team_member(db, org_id, team_id, user_id, external, permission)

    logger.info("Added user %s to team %s (org %s, permission %s)", user_id, team_id, org_id, member.permission)
    return member


def update_team_member(db: Session, org_id: int, team_id: int, user_id: int, permission) -> TeamMember:
    with transaction(db):
        member = _update_team_member(db, org_id, team_id, user_id, permission)

    logger.info("Updated user %s in team %s (org %s) to permission %s", user_id, team_id, org_id, member.permission)
    return member


def remove_team_member(db: Session, org_id: int, team_id: int, user_id: int) -> None:
    with transaction(db):
        _remove_team_member(db, org_id, team_id, user_id)

    logger.info("Removed user %s from team %s (org %s)", user_id, team_id, org_id)


def add_or_update_team_member(db: Session, org_id: int, team_id: int, user_id: int,
                              external: bool, permission) -> TeamMember:
    """
    Upsert a membership inside the caller's transaction.

    The caller owns commit and rollback, so several upserts and removals can
    be grouped into one unit of work.
    """
    if is_team_member(db, org_id, team_id, user_id):
        return _update_team_member(db, org_id, team_id, user_id, permission)

    return _insert_team_member(db, org_id, team_id, user_id, external, permission)


def remove_team_member_in_transaction(db: Session, org_id: int, team_id: int, user_id: int) -> None:
    """Same as :func:`remove_team_member` but inside the caller's transaction."""
    _remove_team_member(db, org_id, team_id, user_id)


def is_admin_of_teams(db: Session, org_id: int, user_id: int) -> bool:
    count = db.query(Team.id).select_from(Team).join(
        TeamMember, TeamMember.team_id == Team.id
    ).filter(
        Team.org_id == org_id,
        TeamMember.user_id == user_id,
        TeamMember.permission == PermissionType.ADMIN
    ).count()

    return count > 0


def user_id_sql(db: Session) -> str:
    preparer = db.get_bind().dialect.identifier_preparer
    return f"{preparer.quote('user')}.{preparer.quote('id')}"


def list_team_members(db: Session,
                      org_id: int | None = None,
                      team_id: int | None = None,
                      user_id: int | None = None,
                      external_only: bool = False,
                      ac_filter: SQLFilter | None = None) -> list[TeamMemberDTO]:
    """
    Memberships joined with the user's display attributes and the identity
    provider that most recently linked the user, ordered by login then email.

    Filters left as None are not applied. Without ``org_id`` the listing spans
    every org.
    """
    latest_auth = aliased(UserAuth)
    latest_auth_id = db.query(latest_auth.id).filter(
        latest_auth.user_id == TeamMember.user_id
    ).order_by(latest_auth.created.desc(), latest_auth.id.desc()).limit(1).correlate(TeamMember).scalar_subquery()

    query = db.query(
        TeamMember.org_id,
        TeamMember.team_id,
        TeamMember.user_id,
        User.email,
        User.name,
        User.login,
        TeamMember.external,
        TeamMember.permission,
        UserAuth.auth_module
    ).select_from(TeamMember).join(
        User, TeamMember.user_id == User.id
    ).outerjoin(
        UserAuth, UserAuth.id == latest_auth_id
    )

    if ac_filter is not None:
        query = query.filter(ac_filter.clause())
    if org_id is not None:
        query = query.filter(TeamMember.org_id == org_id)
    if team_id is not None:
        query = query.filter(TeamMember.team_id == team_id)
    if user_id is not None:
        query = query.filter(TeamMember.user_id == user_id)
    if external_only:
        query = query.filter(TeamMember.external.is_(True))

    rows = query.order_by(User.login.asc(), User.email.asc()).all()

    return [
        TeamMemberDTO(
            org_id=row.org_id,
            team_id=row.team_id,
            user_id=row.user_id,
            email=row.email,
            name=row.name,
            login=row.login,
            external=bool(row.external),
            permission=normalize_permission(row.permission),
            auth_module=row.auth_module
        )
        for row in rows
    ]


def get_user_team_memberships(db: Session, org_id: int, user_id: int,
                              external_only: bool = False) -> list[TeamMemberDTO]:
    """
    Every team membership of one user.

    No access-control filtering is applied here. Only internal callers
    (team sync) may use it; never hand its result to an unprivileged caller.
    """
    return list_team_members(db, org_id=org_id, user_id=user_id, external_only=external_only)
