from enum import IntEnum

from datetime import datetime

from sqlalchemy import Column, Integer, BigInteger, Boolean, DateTime, UniqueConstraint, Index

from shared.database import Base


class PermissionType(IntEnum):
    MEMBER = 0
    ADMIN = 4


def normalize_permission(permission) -> PermissionType:
    """
    Only ADMIN (``4``, ``"4"`` or ``"admin"``) is stored as-is. Every other
    value, unknown ones included, is stored as MEMBER.
    """
    if isinstance(permission, str):
        permission = permission.strip()
        if permission.lower() == "admin":
            return PermissionType.ADMIN

    try:
        if PermissionType(int(permission)) == PermissionType.ADMIN:
            return PermissionType.ADMIN
    except (TypeError, ValueError):
        pass

    return PermissionType.MEMBER


class TeamMember(Base):
    __tablename__ = 'team_member'
    __table_args__ = (
        UniqueConstraint("org_id", "team_id", "user_id", name="uq_team_member_org_id_team_id_user_id"),
        Index("ix_team_member_team_id", "team_id"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    org_id: int = Column(BigInteger, nullable=False, index=True)
    team_id: int = Column(BigInteger, nullable=False)
    user_id: int = Column(BigInteger, nullable=False)
    external: bool = Column(Boolean, nullable=False, default=False)
    permission: int = Column(Integer, nullable=False, default=PermissionType.MEMBER)
    created: datetime = Column(DateTime(timezone=True), nullable=False)
    updated: datetime = Column(DateTime(timezone=True), nullable=False)
