import os
from dataclasses import dataclass
from jose import JWTError, jwt
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Token configuration
SECRET_KEY = os.getenv("SECRET_KEY")
if SECRET_KEY is None:
    raise RuntimeError("SECRET_KEY not set in environment or .env file!")

ALGORITHM = os.getenv("ALGORITHM", "HS256")

ROLE_STAFF = "staff"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
ACTOR_ROLES = (ROLE_STAFF, ROLE_MANAGER, ROLE_ADMIN)

# Tokens are issued by the identity service; this API only decodes them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/token")


@dataclass(frozen=True)
class Actor:
    """Pre-authenticated caller identity carried in the bearer token."""
    actor_id: str
    role: str


def verify_token(token: str) -> Optional[dict]:
    """Verify and decode a JWT token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None


async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Get the actor (id + role) from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token)
    if payload is None:
        raise credentials_exception

    actor_id = payload.get("sub")
    role = payload.get("role")
    if actor_id is None or role not in ACTOR_ROLES:
        raise credentials_exception

    return Actor(actor_id=str(actor_id), role=role)


def require_role(*roles: str):
    """Dependency factory that only lets the given roles through."""

    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {actor.role} is not allowed to perform this action",
            )
        return actor

    return checker


require_staff = require_role(ROLE_STAFF, ROLE_MANAGER, ROLE_ADMIN)
require_admin = require_role(ROLE_ADMIN)
