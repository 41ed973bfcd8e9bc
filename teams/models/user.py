from datetime import datetime

from sqlalchemy import Column, Integer, BigInteger, String, DateTime

from shared.database import Base


class User(Base):
    __tablename__ = "user"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    login: str = Column(String(190), nullable=False, unique=True)
    email: str = Column(String(190), nullable=False, unique=True)
    name: str = Column(String(255), nullable=True)


class UserAuth(Base):
    """Link between a user and the identity provider that authenticated them."""

    __tablename__ = "user_auth"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    user_id: int = Column(BigInteger, nullable=False, index=True)
    auth_module: str = Column(String(190), nullable=False)
    auth_id: str = Column(String(190), nullable=False)
    created: datetime = Column(DateTime(timezone=True), nullable=False)
