import os

from fastapi import Depends, HTTPException, status
from jose import JWTError, jwt
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from typing import Optional

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "insecure-dev-secret-change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

security = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])

    user_id = payload.get("user_id")
    org_id = payload.get("org_id")

    if user_id is None or org_id is None:
        raise ValueError("Incomplete token claims")

    return {
        "user_id": int(user_id),
        "login": payload.get("login"),
        "org_id": int(org_id),
        "org_role": payload.get("org_role", "Viewer"),
        "is_server_admin": bool(payload.get("is_server_admin", False)),
        "permissions": payload.get("permissions") or {},
        "access_token": token
    }


def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
    ):

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return decode_token(credentials.credentials)

    except (JWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
