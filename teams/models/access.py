from sqlalchemy import Column, Integer, BigInteger, String

from shared.database import Base


class DashboardAcl(Base):
    __tablename__ = "dashboard_acl"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    org_id: int = Column(BigInteger, nullable=False)
    dashboard_id: int = Column(BigInteger, nullable=False)
    team_id: int = Column(BigInteger, nullable=True, index=True)
    user_id: int = Column(BigInteger, nullable=True)
    permission: int = Column(Integer, nullable=False, default=1)


class TeamRole(Base):
    __tablename__ = "team_role"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    org_id: int = Column(BigInteger, nullable=False)
    team_id: int = Column(BigInteger, nullable=False, index=True)
    role_id: int = Column(BigInteger, nullable=False)


class Permission(Base):
    __tablename__ = "permission"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    role_id: int = Column(BigInteger, nullable=False)
    action: str = Column(String(190), nullable=False)
    scope: str = Column(String(190), nullable=False, index=True)
