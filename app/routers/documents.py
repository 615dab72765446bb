"""
Document CRUD endpoints. Every route is scoped to the token's user.

POST   /api/documents        — create                    → 201 Document
GET    /api/documents        — list, newest update first → Document[]
GET    /api/documents/{id}   — fetch one                 → Document
PUT    /api/documents/{id}   — full overwrite            → Document
DELETE /api/documents/{id}   — delete                    → {message}
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id, get_owned_document
from app.models.database_models import Document
from app.models.schemas import DocumentResponse, DocumentWrite, MessageResponse
from app.utils.helpers import resolve_title

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(document: Document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        title=document.title,
        content=document.content,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def _server_error(action: str, exc: Exception) -> HTTPException:
    logger.error("Failed to %s document: %s", action, exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action} document",
    )


# ---------------------------------------------------------------------------
# Create / list
# ---------------------------------------------------------------------------

@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    body: DocumentWrite,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Persist a new document; the response carries its assigned id."""
    document = Document(
        user_id=user_id,
        title=resolve_title(body.title),
        content=body.content,
    )
    try:
        db.add(document)
        await db.flush()
    except SQLAlchemyError as exc:
        raise _server_error("save", exc)

    logger.info("Created document id=%s title=%r for user=%s", document.id, document.title, user_id)
    return _to_response(document)


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[DocumentResponse]:
    """List the user's documents, most recently updated first."""
    try:
        result = await db.execute(
            select(Document)
            .where(Document.user_id == user_id)
            .order_by(Document.updated_at.desc())
        )
    except SQLAlchemyError as exc:
        raise _server_error("fetch", exc)

    return [_to_response(d) for d in result.scalars().all()]


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document: Document = Depends(get_owned_document)) -> DocumentResponse:
    return _to_response(document)


@router.put("/{document_id}", response_model=DocumentResponse)
async def update_document(
    body: DocumentWrite,
    document: Document = Depends(get_owned_document),
    db: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Overwrite title and content. There are no partial updates."""
    document.title = resolve_title(body.title)
    document.content = body.content
    document.updated_at = datetime.now(timezone.utc)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        raise _server_error("update", exc)

    logger.info("Updated document id=%s (%d chars)", document.id, len(document.content))
    return _to_response(document)


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    document: Document = Depends(get_owned_document),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await db.delete(document)
        await db.flush()
    except SQLAlchemyError as exc:
        raise _server_error("delete", exc)

    logger.info("Deleted document id=%s", document.id)
    return MessageResponse(message="Document deleted successfully")
