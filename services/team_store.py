import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from services.membership_store import ensure_team_exists
from shared.access_control import SQLFilter, team_scope
from shared.database import transaction
from shared.exceptions import TeamNameTaken, TeamNotFound
from teams.models.access import DashboardAcl, Permission, TeamRole
from teams.models.team_member import TeamMember
from teams.models.teams import Team
from teams.models.user import User

logger = logging.getLogger(__name__)

HIDDEN_USERS = {u.strip() for u in os.getenv("HIDDEN_USERS", "").split(",") if u.strip()}


@dataclass
class TeamDTO:
    id: int
    org_id: int
    name: str
    email: str | None
    member_count: int
    permission: int | None = None


@dataclass
class SearchTeamsResult:
    total_count: int
    teams: list[TeamDTO] = field(default_factory=list)
    page: int = 1
    per_page: int = 0


def filtered_users(signed_in: dict | None, hidden_users: set[str]) -> list[str]:
    """
    Logins excluded from member counts for ``signed_in``.

    Server admins see everyone, and nobody is hidden from themselves.
    """
    if signed_in is None or signed_in.get("is_server_admin"):
        return []

    return sorted(u for u in hidden_users if u != signed_in.get("login"))


def member_count_column(db: Session, hidden: list[str]):
    query = db.query(func.count(TeamMember.id)).select_from(TeamMember).filter(TeamMember.team_id == Team.id)
    if hidden:
        query = query.join(User, TeamMember.user_id == User.id).filter(User.login.notin_(hidden))

    return query.correlate(Team).scalar_subquery().label("member_count")


def _team_dto(row) -> TeamDTO:
    return TeamDTO(
        id=row.id,
        org_id=row.org_id,
        name=row.name,
        email=row.email,
        member_count=row.member_count or 0,
        permission=getattr(row, "permission", None)
    )


def team_name_taken(db: Session, org_id: int, name: str, existing_id: int | None = None) -> bool:
    team = db.query(Team).filter(Team.org_id == org_id, Team.name == name).first()
    return team is not None and team.id != existing_id


def create_team(db: Session, org_id: int, name: str, email: str | None = None) -> Team:
    with transaction(db):
        if team_name_taken(db, org_id, name):
            raise TeamNameTaken()

        now = datetime.now(timezone.utc)
        team = Team(org_id=org_id, name=name, email=email or "", created=now, updated=now)
        db.add(team)
        db.flush()

    logger.info("Created team %s '%s' in org %s", team.id, team.name, org_id)
    return team


def update_team(db: Session, org_id: int, team_id: int, name: str, email: str | None) -> Team:
    with transaction(db):
        if team_name_taken(db, org_id, name, existing_id=team_id):
            raise TeamNameTaken()

        affected = db.query(Team).filter(Team.org_id == org_id, Team.id == team_id).update(
            {
                Team.name: name,
                Team.email: email or "",
                Team.updated: datetime.now(timezone.utc)
            },
            synchronize_session=False
        )
        if affected == 0:
            raise TeamNotFound()

        team = db.query(Team).filter(Team.org_id == org_id, Team.id == team_id).populate_existing().one()

    return team


def delete_team(db: Session, org_id: int, team_id: int) -> None:
    """
    Delete a team together with its members and every access record scoped
    to it. Order: members, team, dashboard ACL, team roles, then
    permissions with the team's scope.
    """
    with transaction(db):
        ensure_team_exists(db, org_id, team_id)

        deletes = [
            (TeamMember, TeamMember.team_id),
            (Team, Team.id),
            (DashboardAcl, DashboardAcl.team_id),
            (TeamRole, TeamRole.team_id),
        ]

        for model, team_column in deletes:
            db.query(model).filter(
                model.org_id == org_id,
                team_column == team_id
            ).delete(synchronize_session=False)

        db.query(Permission).filter(
            Permission.scope == team_scope(team_id)
        ).delete(synchronize_session=False)

    logger.info("Deleted team %s in org %s", team_id, org_id)


def get_team_by_id(db: Session, org_id: int, team_id: int,
                   user_id_filter: int | None = None,
                   signed_in: dict | None = None,
                   hidden_users: set[str] = HIDDEN_USERS) -> TeamDTO:
    hidden = filtered_users(signed_in, hidden_users)
    query = db.query(
        Team.id, Team.org_id, Team.name, Team.email, member_count_column(db, hidden)
    ).select_from(Team)

    if user_id_filter is not None:
        query = query.join(
            TeamMember,
            (TeamMember.team_id == Team.id) & (TeamMember.user_id == user_id_filter)
        )

    row = query.filter(Team.org_id == org_id, Team.id == team_id).first()
    if not row:
        raise TeamNotFound()

    return _team_dto(row)


def search_teams(db: Session, org_id: int,
                 query: str | None = None,
                 name: str | None = None,
                 page: int = 1,
                 limit: int = 0,
                 ac_filter: SQLFilter | None = None,
                 user_id_filter: int | None = None,
                 signed_in: dict | None = None,
                 hidden_users: set[str] = HIDDEN_USERS) -> SearchTeamsResult:
    """
    Teams of ``org_id`` ordered by name.

    ``query`` is a substring match on the name and ``name`` an exact match.
    With ``user_id_filter`` only that user's teams are returned, along with
    the user's permission in each. ``limit == 0`` disables pagination. The
    total count ignores pagination but honours every filter.
    """
    hidden = filtered_users(signed_in, hidden_users)
    page = max(page, 1)

    if user_id_filter is None:
        teams_query = db.query(
            Team.id, Team.org_id, Team.name, Team.email, member_count_column(db, hidden)
        ).select_from(Team)
    else:
        teams_query = db.query(
            Team.id, Team.org_id, Team.name, Team.email,
            TeamMember.permission, member_count_column(db, hidden)
        ).select_from(Team).join(
            TeamMember,
            (TeamMember.team_id == Team.id) & (TeamMember.user_id == user_id_filter)
        )

    count_query = db.query(func.count(Team.id))

    conditions = [Team.org_id == org_id]
    if query:
        conditions.append(Team.name.like(f"%{query}%"))
    if name:
        conditions.append(Team.name == name)
    if ac_filter is not None:
        conditions.append(ac_filter.clause())

    teams_query = teams_query.filter(*conditions).order_by(Team.name.asc())

    if user_id_filter is not None:
        member_teams = select(TeamMember.team_id).where(TeamMember.user_id == user_id_filter)
        count_query = count_query.filter(Team.id.in_(member_teams))

    if limit:
        teams_query = teams_query.limit(limit).offset(limit * (page - 1))

    teams = [_team_dto(row) for row in teams_query.all()]
    total_count = count_query.filter(*conditions).scalar() or 0

    return SearchTeamsResult(total_count=total_count, teams=teams, page=page, per_page=limit)


def list_teams_by_user(db: Session, org_id: int, user_id: int) -> list[TeamDTO]:
    rows = db.query(
        Team.id, Team.org_id, Team.name, Team.email, member_count_column(db, []),
        TeamMember.permission.label("permission")
    ).select_from(Team).join(
        TeamMember, TeamMember.team_id == Team.id
    ).filter(
        Team.org_id == org_id,
        TeamMember.user_id == user_id
    ).order_by(Team.name.asc()).all()

    return [_team_dto(row) for row in rows]
