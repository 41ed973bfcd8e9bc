from pydantic import BaseModel, field_validator

from typing import Optional

from teams.models.team_member import PermissionType, normalize_permission


class TeamMemberResponse(BaseModel):
    org_id: int
    team_id: int
    user_id: int
    email: str
    name: Optional[str] = None
    login: str
    external: bool
    permission: PermissionType
    auth_module: Optional[str] = None

    model_config = {
        "from_attributes": True
    }


class TeamMemberCreateRequest(BaseModel):
    user_id: int
    permission: PermissionType = PermissionType.MEMBER

    @field_validator('permission', mode='before')
    def validate_permission(cls, v):
        return normalize_permission(v)


class TeamMemberUpdateRequest(BaseModel):
    permission: PermissionType

    @field_validator('permission', mode='before')
    def validate_permission(cls, v):
        return normalize_permission(v)
