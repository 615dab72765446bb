"""Editor-side lifecycle: session state, typing animation, API clients, export."""
from app.client.animator import TypingAnimator, prefixes
from app.client.api import (
    ApiSession,
    AuthClient,
    DocumentRecord,
    DocumentStoreClient,
    GenerationClient,
)
from app.client.coordinator import RequestCoordinator, build_coordinator
from app.client.export import PdfExporter
from app.client.session import ContentBuffer, ExpiringMessage, Operation, SessionState

__all__ = [
    "ApiSession",
    "AuthClient",
    "ContentBuffer",
    "DocumentRecord",
    "DocumentStoreClient",
    "ExpiringMessage",
    "GenerationClient",
    "Operation",
    "PdfExporter",
    "RequestCoordinator",
    "SessionState",
    "TypingAnimator",
    "build_coordinator",
    "prefixes",
]
