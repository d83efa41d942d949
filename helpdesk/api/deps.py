"""
FastAPI Dependencies

Provides dependency injection for database sessions, the caller's identity
and the collaboration service.

Sessions are issued by the identity service; this module only verifies the
bearer token and loads the account it names.

SECURITY NOTES:
- JWT payloads are never logged
- Bearer token is the only accepted credential
"""

from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
import logging

from helpdesk.database import get_db
from helpdesk.config import settings
from helpdesk.exceptions import ForbiddenError, UnauthorizedError
from helpdesk.models.user import User
from helpdesk.schemas.auth import TokenData
from helpdesk.security.rbac import Identity, Role
from helpdesk.services.blob_store import BlobStore, get_blob_store
from helpdesk.services.collaboration import CollaborationService

logger = logging.getLogger(__name__)


security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token in the format the identity service issues."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    """Verify a token and return its claims. Raises UnauthorizedError."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            raise UnauthorizedError("Could not validate credentials")
        return TokenData(
            user_id=int(sub),
            role=payload.get("role", Role.MEMBER.value),
            email=payload.get("email"),
        )
    except JWTError:
        # SECURITY: Don't log token decode errors with details
        logger.warning("JWT validation failed")
        raise UnauthorizedError("Could not validate credentials")
    except ValueError:
        logger.warning("Invalid token format")
        raise UnauthorizedError("Could not validate credentials")


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> User:
    """Load the account named by the bearer token."""
    if not credentials:
        raise UnauthorizedError("Access token required")

    token_data = decode_access_token(credentials.credentials)

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedError("Could not validate credentials")
    if not user.is_active:
        raise ForbiddenError("User account is disabled")

    logger.debug("User authenticated", extra={"user_id": user.id})
    return user


async def get_current_identity(
    current_user: Annotated[User, Depends(get_current_user)]
) -> Identity:
    """The caller as the collaboration core sees it: an id and a role."""
    return Identity(user_id=current_user.id, role=Role(current_user.role))


async def get_collaboration_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
) -> CollaborationService:
    return CollaborationService(db, blob_store)


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
Collaboration = Annotated[CollaborationService, Depends(get_collaboration_service)]
