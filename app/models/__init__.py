"""Database and schema models for SmartDocsAI."""
from app.models.database_models import (
    User,
    Document,
)
from app.models.schemas import (
    SignupRequest,
    SigninRequest,
    UserResponse,
    AuthResponse,
    DocumentWrite,
    DocumentResponse,
    MessageResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationErrorResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Document",
    # Pydantic schemas
    "SignupRequest",
    "SigninRequest",
    "UserResponse",
    "AuthResponse",
    "DocumentWrite",
    "DocumentResponse",
    "MessageResponse",
    "GenerateRequest",
    "GenerateResponse",
    "GenerationErrorResponse",
    "HealthCheckResponse",
]
