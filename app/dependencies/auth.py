"""
Authentication dependencies for FastAPI routes.

Protected routes take ``Authorization: Bearer <token>``; a missing,
malformed, expired or orphaned token is answered with 401.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.database_models import Document, User
from app.utils.security import extract_token_from_header, verify_token

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
) -> str:
    """Extract the authenticated user ID from the bearer token. Raises 401 if absent or invalid."""
    token = extract_token_from_header(authorization)
    if not token:
        raise _unauthorized("No authentication token, access denied")

    payload = verify_token(token)
    user_id = payload.get("sub") if payload else None
    if not user_id:
        raise _unauthorized("Token verification failed, authorization denied")
    return user_id


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the token's user. A token for a deleted account is treated as invalid."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning("Token presented for unknown user id=%s", user_id)
        raise _unauthorized("User not found")

    return user


async def get_owned_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Document:
    """
    Verify that the given document belongs to the current user.
    Returns the Document ORM object or raises 404.
    """
    result = await db.execute(
        select(Document).where(
            Document.id == document_id,
            Document.user_id == user_id,
        )
    )
    document = result.scalar_one_or_none()

    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )

    return document
