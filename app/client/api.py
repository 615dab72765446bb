"""
HTTP clients the editor uses to reach the SmartDocsAI API.

Public API
----------
ApiSession                                  — shared httpx client + bearer token
AuthClient.signup / signin                  — obtain a token
DocumentStoreClient.create/update/list/get/delete
GenerationClient.generate(prompt, current_content) -> str

Every failure is raised as an ``app.errors`` exception; no raw httpx error
escapes this module.  Nothing is retried.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.errors import (
    NetworkError,
    NotFound,
    RemoteUnavailable,
    SmartDocsError,
    StoreUnavailable,
    Timeout,
    Unauthorized,
    ValidationError,
    vendor_error_from_code,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class DocumentRecord:
    """A document as returned by the API."""

    id: str
    title: str
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            id=data["id"],
            title=data.get("title") or settings.DEFAULT_DOCUMENT_TITLE,
            content=data.get("content") or "",
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _error_detail(resp: httpx.Response) -> str:
    """Best-effort human text from an error body (FastAPI ``detail`` or ``error``)."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if not isinstance(body, dict):
        return str(body)[:200]
    detail = body.get("detail") or body.get("error") or ""
    if isinstance(detail, list):
        # Pydantic validation errors: keep the first message only.
        detail = detail[0].get("msg", "") if detail and isinstance(detail[0], dict) else ""
    return str(detail)


def raise_for_status(resp: httpx.Response) -> None:
    """Map a non-2xx response onto the error taxonomy."""
    if resp.is_success:
        return
    detail = _error_detail(resp)
    if resp.status_code == 401:
        raise Unauthorized(details=detail)
    if resp.status_code == 404:
        raise NotFound(details=detail)
    if resp.status_code in (400, 422):
        raise ValidationError(detail or None, details=detail)
    if resp.status_code >= 500:
        raise RemoteUnavailable(details=detail)
    raise SmartDocsError(details=f"HTTP {resp.status_code}: {detail}")


class ApiSession:
    """One httpx.AsyncClient plus the bearer token, shared by all clients."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.token = token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        kwargs: Dict[str, Any] = {"json": json, "headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout
        return await self._client.request(method, path, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class _StoreBackedClient:
    def __init__(self, session: ApiSession) -> None:
        self.session = session

    async def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            resp = await self.session.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise StoreUnavailable(details=str(exc)) from exc
        raise_for_status(resp)
        return resp.json()


class AuthClient(_StoreBackedClient):
    """Signs in and stores the token on the shared session."""

    async def signup(self, name: str, email: str, password: str) -> Dict[str, Any]:
        data = await self._call(
            "POST", "/api/auth/signup",
            json={"name": name, "email": email, "password": password},
        )
        self.session.token = data["token"]
        return data["user"]

    async def signin(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._call(
            "POST", "/api/auth/signin",
            json={"email": email, "password": password},
        )
        self.session.token = data["token"]
        return data["user"]


class DocumentStoreClient(_StoreBackedClient):
    """CRUD over ``/api/documents``."""

    async def create(self, title: str, content: str) -> DocumentRecord:
        data = await self._call("POST", "/api/documents", json={"title": title, "content": content})
        return DocumentRecord.from_json(data)

    async def update(self, document_id: str, title: str, content: str) -> DocumentRecord:
        data = await self._call(
            "PUT", f"/api/documents/{document_id}",
            json={"title": title, "content": content},
        )
        return DocumentRecord.from_json(data)

    async def list(self) -> List[DocumentRecord]:
        """All of the user's documents, most recently updated first."""
        data = await self._call("GET", "/api/documents")
        return [DocumentRecord.from_json(item) for item in data]

    async def get(self, document_id: str) -> DocumentRecord:
        data = await self._call("GET", f"/api/documents/{document_id}")
        return DocumentRecord.from_json(data)

    async def delete(self, document_id: str) -> None:
        await self._call("DELETE", f"/api/documents/{document_id}")


class GenerationClient:
    """``POST /api/ai/generate`` with its own, longer timeout."""

    def __init__(self, session: ApiSession, timeout: Optional[float] = None) -> None:
        self.session = session
        self.timeout = settings.AI_TIMEOUT if timeout is None else timeout

    async def generate(self, prompt: str, current_content: str = "") -> str:
        """
        Returns the newly generated HTML.

        Raises:
            VendorError subclass for AI failures, ValidationError for a
            rejected prompt, Unauthorized for a bad token.
        """
        try:
            resp = await self.session.request(
                "POST",
                "/api/ai/generate",
                json={"prompt": prompt, "currentContent": current_content},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise Timeout(details=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(details=str(exc)) from exc

        if resp.status_code == 503:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            raise vendor_error_from_code(body.get("code"), body.get("details", ""))

        raise_for_status(resp)
        return resp.json()["content"]
