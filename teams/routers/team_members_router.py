from fastapi import APIRouter, Depends, HTTPException, status, Request

from typing import List

from sqlalchemy.orm import Session

import logging

from auth import get_current_user
from services import membership_store
from shared.access_control import (ACTION_ORG_USERS_READ, ACTION_TEAMS_PERMISSIONS_READ,
                                   ACTION_TEAMS_PERMISSIONS_WRITE, build_filter)
from shared.auth_utils import can_admin_team
from shared.dependencies import get_db

from shared.exceptions import NotFound
from teams.models.user import User

from teams.schemas.team_members import TeamMemberCreateRequest, TeamMemberUpdateRequest, TeamMemberResponse

from messaging.audit_publisher import run_async_audit, generate_log_payload, model_to_dict

logger = logging.getLogger(__name__)

responses_get_members = {
    200: {"description": "Team members returned."},
    403: {"description": "The signed-in user may not view this team's members."},
    404: {"description": "No team with this ID in the user's organization."}
}
responses_add_member = {
    200: {"description": "Member added."},
    400: {"description": "Invalid permission value."},
    403: {"description": "The signed-in user may not add members to this team."},
    404: {"description": "The team or the user does not exist."},
    409: {"description": "The user is already a member of the team."}
}
responses_update_member = {
    200: {"description": "Member permission updated."},
    400: {"description": "The member is the team's last admin and cannot be demoted."},
    403: {"description": "The signed-in user may not update members of this team."},
    404: {"description": "The member does not exist."}
}
responses_remove_member = {
    200: {"description": "Member removed."},
    400: {"description": "The member is the team's last admin and cannot be removed."},
    403: {"description": "The signed-in user may not remove members from this team."},
    404: {"description": "The team or the member does not exist."}
}

router = APIRouter(
    prefix="/api/v1/teams/{team_id}/members",
    tags=["Team Members"]
)


def _forbid_unless_team_admin(db: Session, current_user: dict, action: str, team_id: int, detail: str):
    if not can_admin_team(db, current_user, action, team_id):
        raise HTTPException(status_code=403, detail=detail)


@router.get("/", response_model=List[TeamMemberResponse], responses=responses_get_members)
def get_team_members_by_team_id(team_id: int,
                                db: Session = Depends(get_db),
                                current_user: dict = Depends(get_current_user)):
    """
    Get Team Members By Team Id

    Lists the members of a team, ordered by login then email, with the
    identity provider that most recently authenticated each of them.

    - **Authorization**: org admins, users with ``teams.permissions:read`` on
      the team, and members of the team.
    - Members the signed-in user may not see (``org.users:read``) are left out.

    **Example response:**

    .. code-block:: json

       [
         {
           "org_id": 1,
           "team_id": 42,
           "user_id": 7,
           "email": "ana@example.com",
           "name": "Ana",
           "login": "ana",
           "external": false,
           "permission": 4,
           "auth_module": "oauth_github"
         }
       ]
    """
    org_id = current_user["org_id"]

    membership_store.ensure_team_exists(db, org_id, team_id)

    allowed = can_admin_team(db, current_user, ACTION_TEAMS_PERMISSIONS_READ, team_id) or \
        membership_store.is_team_member(db, org_id, team_id, current_user["user_id"])

    if not allowed:
        raise HTTPException(
            status_code=403,
            detail="You are not allowed to view this team's members."
        )

    ac_filter = build_filter(
        current_user, membership_store.user_id_sql(db), "users:id:", ACTION_ORG_USERS_READ
    )

    return membership_store.list_team_members(db, org_id=org_id, team_id=team_id, ac_filter=ac_filter)


@router.post("/", responses=responses_add_member)
def add_team_member_to_team(team_id: int,
                            team_member_request: TeamMemberCreateRequest,
                            request_object: Request,
                            db: Session = Depends(get_db),
                            current_user: dict = Depends(get_current_user)):
    """
    Add Team Member To Team

    Adds a user of the organization to the team.

    - **Authorization**: org admins, users with ``teams.permissions:write``
      on the team, and admins of the team.
    - ``permission`` is ``0`` (Member, default) or ``4`` (Admin); any other
      value is stored as Member.

    **Example payload:**

    .. code-block:: json

       {"user_id": 7, "permission": 4}
    """
    org_id = current_user["org_id"]

    _forbid_unless_team_admin(db, current_user, ACTION_TEAMS_PERMISSIONS_WRITE, team_id,
                              "You are not allowed to add members to this team.")

    if db.query(User.id).filter(User.id == team_member_request.user_id).first() is None:
        raise NotFound("User")

    member = membership_store.add_team_member(
        db, org_id, team_id, team_member_request.user_id,
        external=False,
        permission=team_member_request.permission
    )

    run_async_audit(generate_log_payload(
        event_type="team.members.added",
        entity_type="team_member",
        entity_id=member.id,
        operation_type="CREATE",
        org_id=org_id,
        user_id=current_user["user_id"],
        request_object=request_object,
        new_data=model_to_dict(member)
    ))

    return {
        "message": "Member added to team",
        "team_id": team_id,
        "user_id": member.user_id,
        "permission": member.permission
    }


@router.put("/{user_id}", responses=responses_update_member)
def update_team_member_permission(team_id: int,
                                  user_id: int,
                                  team_member_request: TeamMemberUpdateRequest,
                                  request_object: Request,
                                  db: Session = Depends(get_db),
                                  current_user: dict = Depends(get_current_user)):
    """
    Update Team Member

    Changes a member's permission. Demoting the team's only admin is refused.

    **Example payload:**

    .. code-block:: json

       {"permission": 0}
    """
    org_id = current_user["org_id"]

    _forbid_unless_team_admin(db, current_user, ACTION_TEAMS_PERMISSIONS_WRITE, team_id,
                              "You are not allowed to update members of this team.")

    old_data = model_to_dict(membership_store.get_team_member(db, org_id, team_id, user_id))

    member = membership_store.update_team_member(db, org_id, team_id, user_id, team_member_request.permission)

    run_async_audit(generate_log_payload(
        event_type="team.members.updated",
        entity_type="team_member",
        entity_id=member.id,
        operation_type="UPDATE",
        org_id=org_id,
        user_id=current_user["user_id"],
        request_object=request_object,
        old_data=old_data,
        new_data=model_to_dict(member)
    ))

    return {
        "message": "Team member updated",
        "team_id": team_id,
        "user_id": user_id,
        "permission": member.permission
    }


@router.delete("/{user_id}", responses=responses_remove_member, status_code=status.HTTP_200_OK)
def remove_team_member_from_team(team_id: int,
                                 user_id: int,
                                 request_object: Request,
                                 db: Session = Depends(get_db),
                                 current_user: dict = Depends(get_current_user)):
    """
    Remove Team Member From Team

    Removes a member from the team. Removing the team's only admin is refused.
    """
    org_id = current_user["org_id"]

    _forbid_unless_team_admin(db, current_user, ACTION_TEAMS_PERMISSIONS_WRITE, team_id,
                              "You are not allowed to remove members from this team.")

    membership_store.remove_team_member(db, org_id, team_id, user_id)

    run_async_audit(generate_log_payload(
        event_type="team.members.removed",
        entity_type="team_member",
        entity_id=f"{team_id}:{user_id}",
        operation_type="DELETE",
        org_id=org_id,
        user_id=current_user["user_id"],
        request_object=request_object
    ))

    return {
        "message": "Team member removed",
        "team_id": team_id,
        "user_id": user_id
    }
