from pydantic import BaseModel, field_validator

from typing import List, Optional

from teams.models.team_member import PermissionType


class TeamResponse(BaseModel):
    id: int
    org_id: int
    name: str
    email: Optional[str] = None
    member_count: int = 0
    permission: Optional[PermissionType] = None

    model_config = {
        "from_attributes": True
    }


class TeamSearchResponse(BaseModel):
    total_count: int
    teams: List[TeamResponse]
    page: int
    per_page: int

    model_config = {
        "from_attributes": True
    }


class TeamCreatedResponse(BaseModel):
    message: str
    team_id: int


class TeamCreateRequest(BaseModel):
    name: str
    email: Optional[str] = None

    @field_validator('name')
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Team name must not be empty")

        return v


class TeamUpdateRequest(TeamCreateRequest):
    pass


class UserTeamsResponse(BaseModel):
    teams: List[TeamResponse]
    is_admin_of_teams: bool
