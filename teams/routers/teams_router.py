from fastapi import APIRouter, Depends, Query, HTTPException, status, Response, Request

from typing import Optional

from sqlalchemy.orm import Session

import logging
import os

from auth import get_current_user
from services import membership_store, team_store
from services.team_store import search_teams, TeamDTO
from shared.access_control import (ACTION_TEAMS_CREATE, ACTION_TEAMS_DELETE, ACTION_TEAMS_READ,
                                   ACTION_TEAMS_WRITE, build_filter, has_wildcard_scope, scopes_for,
                                   team_scope)
from shared.auth_utils import has_role, has_permission, can_admin_team
from shared.dependencies import get_db
from teams.schemas.teams import (TeamResponse, TeamSearchResponse, TeamCreateRequest, TeamUpdateRequest,
                                 TeamCreatedResponse, UserTeamsResponse)

from messaging.audit_publisher import run_async_audit, generate_log_payload, model_to_dict

logger = logging.getLogger(__name__)

EDITORS_CAN_ADMIN = os.getenv("EDITORS_CAN_ADMIN", "false").lower() == "true"

responses_team = {
    401: {"description": "Missing or invalid token."},
    403: {"description": "The signed-in user may not perform this action."},
    404: {"description": "No team with this ID in the user's organization."}
}

router = APIRouter(
    prefix="/api/v1/teams",
    tags=["Teams"]
)


def _to_response(team: TeamDTO) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        org_id=team.org_id,
        name=team.name,
        email=team.email,
        member_count=team.member_count,
        permission=team.permission
    )


@router.get("/search", response_model=TeamSearchResponse)
def search_teams_in_org(query: Optional[str] = Query(None, description="Substring of the team name"),
                        name: Optional[str] = Query(None, description="Exact team name"),
                        page: int = Query(1, ge=1),
                        perpage: int = Query(1000, ge=0),
                        db: Session = Depends(get_db),
                        current_user: dict = Depends(get_current_user)):
    """
    Search Teams

    Lists the teams of the signed-in user's organization, ordered by name.

    - Org admins and users allowed to read every team see all teams.
    - Users holding specific ``teams:read`` scopes see those teams.
    - Everyone else sees the teams they belong to, with their permission.
    - ``page`` starts at 1; ``perpage=0`` returns every match.

    **Example response:**

    .. code-block:: json

       {
         "total_count": 1,
         "page": 1,
         "per_page": 1000,
         "teams": [
           {"id": 42, "org_id": 1, "name": "Backend", "email": "backend@example.com",
            "member_count": 2, "permission": null}
         ]
       }
    """
    user_id_filter = None
    ac_filter = None

    if not has_wildcard_scope(current_user, ACTION_TEAMS_READ, "teams:id:"):
        if scopes_for(current_user, ACTION_TEAMS_READ):
            ac_filter = build_filter(current_user, "team.id", "teams:id:", ACTION_TEAMS_READ)
        else:
            user_id_filter = current_user["user_id"]

    result = search_teams(
        db,
        current_user["org_id"],
        query=query,
        name=name,
        page=page,
        limit=perpage,
        ac_filter=ac_filter,
        user_id_filter=user_id_filter,
        signed_in=current_user
    )

    return TeamSearchResponse(
        total_count=result.total_count,
        teams=[_to_response(t) for t in result.teams],
        page=result.page,
        per_page=result.per_page
    )


@router.post("/", response_model=TeamCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_team_in_org(team_request: TeamCreateRequest,
                       request_object: Request,
                       db: Session = Depends(get_db),
                       current_user: dict = Depends(get_current_user)):
    """
    Create Team

    Creates a team in the signed-in user's organization. Team names are
    unique per organization.

    **Example payload:**

    .. code-block:: json

       {"name": "Backend", "email": "backend@example.com"}
    """
    allowed = has_permission(current_user, ACTION_TEAMS_CREATE, "teams:*") or (
        EDITORS_CAN_ADMIN and has_role([current_user["org_role"]], "Editor")
    )
    if not allowed:
        raise HTTPException(
            status_code=403,
            detail="You are not allowed to create teams."
        )

    team = team_store.create_team(db, current_user["org_id"], team_request.name, team_request.email)

    run_async_audit(generate_log_payload(
        event_type="teams.created",
        entity_type="team",
        entity_id=team.id,
        operation_type="CREATE",
        org_id=team.org_id,
        user_id=current_user["user_id"],
        request_object=request_object,
        new_data=model_to_dict(team)
    ))

    return TeamCreatedResponse(message="Team created", team_id=team.id)


@router.get("/mine", response_model=UserTeamsResponse)
def get_signed_in_user_teams(db: Session = Depends(get_db),
                             current_user: dict = Depends(get_current_user)):
    """
    Get My Teams

    Lists the teams the signed-in user belongs to, ordered by name, with the
    user's permission in each. ``is_admin_of_teams`` tells whether the user
    administers at least one of them.
    """
    org_id = current_user["org_id"]
    user_id = current_user["user_id"]

    teams = team_store.list_teams_by_user(db, org_id, user_id)

    return UserTeamsResponse(
        teams=[_to_response(t) for t in teams],
        is_admin_of_teams=membership_store.is_admin_of_teams(db, org_id, user_id)
    )


@router.get("/{team_id}", response_model=TeamResponse, responses=responses_team)
def get_team_by_id(team_id: int,
                   db: Session = Depends(get_db),
                   current_user: dict = Depends(get_current_user)):
    """
    Get Team By Id

    Returns one team of the signed-in user's organization. Users without
    read access to the team only see it if they are a member.
    """
    user_id_filter = None
    if not has_permission(current_user, ACTION_TEAMS_READ, team_scope(team_id)):
        user_id_filter = current_user["user_id"]

    team = team_store.get_team_by_id(
        db, current_user["org_id"], team_id,
        user_id_filter=user_id_filter,
        signed_in=current_user
    )

    return _to_response(team)


@router.put("/{team_id}", response_model=TeamResponse, responses=responses_team)
def update_team_by_id(team_id: int,
                      team_request: TeamUpdateRequest,
                      request_object: Request,
                      db: Session = Depends(get_db),
                      current_user: dict = Depends(get_current_user)):
    """
    Update Team

    Renames a team and/or changes its email. Allowed for org admins, users
    with ``teams:write`` on the team and the team's own admins.
    """
    if not can_admin_team(db, current_user, ACTION_TEAMS_WRITE, team_id):
        raise HTTPException(
            status_code=403,
            detail="You are not allowed to update this team."
        )

    old_data = model_to_dict(team_store.get_team_by_id(db, current_user["org_id"], team_id))

    team_store.update_team(db, current_user["org_id"], team_id, team_request.name, team_request.email)
    team = team_store.get_team_by_id(db, current_user["org_id"], team_id, signed_in=current_user)

    run_async_audit(generate_log_payload(
        event_type="teams.updated",
        entity_type="team",
        entity_id=team_id,
        operation_type="UPDATE",
        org_id=current_user["org_id"],
        user_id=current_user["user_id"],
        request_object=request_object,
        old_data=old_data,
        new_data=model_to_dict(team)
    ))

    return _to_response(team)


@router.delete("/{team_id}", responses=responses_team)
def delete_team_by_id(team_id: int,
                      response: Response,
                      request_object: Request,
                      db: Session = Depends(get_db),
                      current_user: dict = Depends(get_current_user)):
    """
    Delete Team

    Deletes a team, its memberships and every permission record scoped to it.
    """
    if not can_admin_team(db, current_user, ACTION_TEAMS_DELETE, team_id):
        raise HTTPException(
            status_code=403,
            detail="You are not allowed to delete this team."
        )

    team_store.delete_team(db, current_user["org_id"], team_id)

    run_async_audit(generate_log_payload(
        event_type="teams.deleted",
        entity_type="team",
        entity_id=team_id,
        operation_type="DELETE",
        org_id=current_user["org_id"],
        user_id=current_user["user_id"],
        request_object=request_object
    ))

    response.status_code = status.HTTP_200_OK
    return {
        "message": "Team deleted",
        "team_id": team_id
    }
