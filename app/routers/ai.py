"""
AI generation endpoint.

POST /api/ai/generate — {prompt, currentContent} → {content}

Vendor failures come back as 503 with a mapped, user-facing ``error``, the
raw vendor text in ``details``, and a stable ``code`` the editor client
uses to rebuild the matching exception.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.dependencies.auth import get_current_user_id
from app.errors import VendorError
from app.models.schemas import GenerateRequest, GenerateResponse, GenerationErrorResponse
from app.services.generation import GeminiGenerationService, get_generation_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerateResponse,
    responses={503: {"model": GenerationErrorResponse}},
)
async def generate(
    body: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    service: GeminiGenerationService = Depends(get_generation_service),
):
    """Generate HTML for the prompt. Only the new content is returned."""
    prompt = (body.prompt or "").strip()
    if not prompt:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Prompt is required",
        )

    try:
        content = await service.generate(prompt, body.current_content or "")
    except VendorError as exc:
        logger.error(
            "AI generation failed for user=%s: %s (%s)", user_id, exc.code, exc.details
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=GenerationErrorResponse(
                error=exc.message,
                details=exc.details or exc.message,
                code=exc.code,
            ).model_dump(),
        )

    return GenerateResponse(content=content)
