"""
Content generation via the Gemini ``generateContent`` REST endpoint.

Public API
----------
GeminiGenerationService.generate(prompt, current_content) -> str
get_generation_service()                                  -> FastAPI dependency

The service returns only the newly generated HTML.  Deciding whether it
replaces or is appended to the existing document is the editor's job.

Failures are raised as ``app.errors.VendorError`` subclasses so the router
can answer with a mapped 503 instead of leaking raw vendor text.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.errors import (
    InvalidCredentials,
    NetworkError,
    Timeout,
    Unknown,
    VendorError,
    classify_vendor_error,
)
from app.utils.helpers import clean_generated_text, ensure_html, truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are a document editor assistant. Your task is to generate content based on user requests.
Important rules:
1. ONLY generate the requested content, nothing else
2. Do not add explanations, introductions, or conclusions
3. Do not mention that you are an AI or assistant
4. Use proper HTML formatting for the content
5. Keep the tone professional and consistent
6. If asked to modify existing content, only return the modified version
7. If asked to add new content, only return the new content\
"""

_USER_PROMPT = """\
Current document content:
{current_content}

User request: {prompt}

Instructions:
1. Generate ONLY the requested content
2. Use proper HTML formatting
3. Do not add any explanations or additional text
4. If modifying existing content, return only the modified version
5. If adding new content, return only the new content\
"""


class GeminiGenerationService:
    """
    Thin async wrapper around Gemini's REST API.

    * One ``httpx.AsyncClient`` per call; the timeout covers the whole request
    * No retries
    * Errors are classified into the VendorError taxonomy
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = httpx.Timeout(timeout or settings.AI_TIMEOUT, connect=10.0)
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    # ------------------------------------------------------------------
    # Primary API
    # ------------------------------------------------------------------

    async def generate(self, prompt: str, current_content: str = "") -> str:
        """
        Generate HTML for *prompt* in the context of *current_content*.

        Raises:
            VendorError: one of Overloaded, InvalidCredentials, QuotaExceeded,
                NetworkError, Timeout or Unknown.
        """
        if not self.is_configured:
            raise InvalidCredentials(details="GEMINI_API_KEY is not set")

        payload = self._build_payload(prompt, current_content)
        data = await self._post(payload)
        text = self._extract_text(data)

        content = ensure_html(clean_generated_text(text))
        if not content:
            raise Unknown(details="empty response from model")

        logger.info(
            "generate: %d chars for prompt %r",
            len(content),
            truncate_text(prompt, 60),
        )
        return content

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _build_payload(prompt: str, current_content: str) -> Dict[str, Any]:
        user_prompt = _USER_PROMPT.format(
            current_content=current_content or "No existing content",
            prompt=prompt,
        )
        return {
            "systemInstruction": {"parts": [{"text": _SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
        }

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.TimeoutException as exc:
            logger.error("generate: request timed out after %s", self.timeout.read)
            raise Timeout(details=str(exc)) from exc
        except httpx.TransportError as exc:
            logger.error("generate: connection error — %s", exc)
            raise NetworkError(details=str(exc)) from exc

        if resp.status_code == 200:
            return resp.json()

        raw = self._describe_failure(resp)
        logger.error("generate: Gemini returned HTTP %d: %s", resp.status_code, raw[:300])
        raise classify_vendor_error(raw)

    @staticmethod
    def _describe_failure(resp: httpx.Response) -> str:
        """Compose ``"<status> <STATUS_NAME> <message>"`` for classification."""
        try:
            err = resp.json().get("error", {})
        except ValueError:
            err = {}
        if not isinstance(err, dict):
            err = {"message": str(err)}
        return f"{resp.status_code} {err.get('status', '')} {err.get('message', resp.text)}".strip()

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise Unknown(details=f"no candidates returned: {feedback}")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)


_service: Optional[GeminiGenerationService] = None


def get_generation_service() -> GeminiGenerationService:
    """FastAPI dependency; tests override it with a fake."""
    global _service
    if _service is None:
        _service = GeminiGenerationService()
    return _service


__all__ = ["GeminiGenerationService", "VendorError", "get_generation_service"]
