from sqlalchemy import Column, Integer, BigInteger, String, DateTime, UniqueConstraint

from datetime import datetime, timezone

from shared.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Team(Base):
    __tablename__ = "team"
    __table_args__ = (
        UniqueConstraint("org_id", "name", name="uq_team_org_id_name"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    org_id: int = Column(BigInteger, nullable=False, index=True)
    name: str = Column(String(190), nullable=False)
    email: str = Column(String(190), nullable=True)
    created: datetime = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated: datetime = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
