"""
Pydantic schemas for request/response validation.

JSON field names on the wire are camelCase (``currentContent``,
``createdAt``); Python attributes stay snake_case.
"""
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional
from datetime import datetime


# Auth Schemas
class SignupRequest(BaseModel):
    """Schema for creating an account."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class SigninRequest(BaseModel):
    """Schema for signing in."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public view of a user."""

    id: str
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Token plus the user it was issued for."""

    token: str
    user: UserResponse


# Document Schemas
class DocumentWrite(BaseModel):
    """Body for both create and full-overwrite update."""

    title: Optional[str] = Field(None, max_length=255)
    content: str = ""


class DocumentResponse(BaseModel):
    """Schema for document responses."""

    id: str
    title: str
    content: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class MessageResponse(BaseModel):
    message: str


# AI Schemas
class GenerateRequest(BaseModel):
    """Prompt plus a snapshot of the editor content it refers to."""

    # Optional so a missing prompt surfaces as 400 from the router, not 422.
    prompt: Optional[str] = None
    current_content: Optional[str] = Field(None, alias="currentContent")

    model_config = ConfigDict(populate_by_name=True)


class GenerateResponse(BaseModel):
    content: str


class GenerationErrorResponse(BaseModel):
    """503 body for a classified vendor failure."""

    error: str
    details: str
    code: str


# Health
class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    ai_configured: bool
    timestamp: datetime
