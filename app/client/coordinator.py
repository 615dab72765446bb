"""
Request coordinator for the editor session.

Generate, save and export are user-initiated coroutines that all touch one
content buffer.  The coordinator is the only thing that starts them, and it
enforces the rules that keep the buffer consistent:

* At most one generation is outstanding.  A second ``generate`` while one is
  in flight (network call or typing animation) is rejected, not queued.
* Every generation gets a token.  A response is applied only if its token is
  still the latest; ``cancel_generation``, ``load`` and ``new_document`` bump
  the token, so a late response from an abandoned request is discarded.
* Saves and loads carry a document token that ``load`` and ``new_document``
  bump; a save or load that returns after a switch leaves the session alone.
* Export refuses to run while the typing animation is revealing text.  A
  second save or export while one is in flight is refused with a message.
* Every failure becomes one display string on the session; nothing retries.

All of this runs on one asyncio loop; there are no locks.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from app.client.animator import TypingAnimator
from app.client.api import ApiSession, DocumentRecord, DocumentStoreClient, GenerationClient
from app.client.export import PdfExporter
from app.client.session import SessionState
from app.config import settings
from app.errors import NotFound, ValidationError, user_message
from app.utils.helpers import resolve_title, truncate_text

logger = logging.getLogger(__name__)

SEPARATOR = "\n\n"
SAVED_MESSAGE = "Document saved successfully!"


class DocumentStore(Protocol):
    async def create(self, title: str, content: str) -> DocumentRecord: ...

    async def update(self, document_id: str, title: str, content: str) -> DocumentRecord: ...

    async def get(self, document_id: str) -> DocumentRecord: ...


class ContentGenerator(Protocol):
    async def generate(self, prompt: str, current_content: str = "") -> str: ...


class Exporter(Protocol):
    async def export(self, html: str, title: str = "", output_dir: Optional[Path] = None) -> Path: ...


StateListener = Callable[[SessionState], None]


class RequestCoordinator:
    """Owns a SessionState and mediates every async operation against it."""

    def __init__(
        self,
        store: DocumentStore,
        generator: ContentGenerator,
        exporter: Exporter,
        state: Optional[SessionState] = None,
        animator: Optional[TypingAnimator] = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.exporter = exporter
        self.state = state or SessionState()
        self.animator = animator or TypingAnimator(self.state.buffer)
        self.animator.on_tick = lambda _prefix: self._notify()
        self.state.error.on_expire = self._notify
        self.state.success.on_expire = self._notify

        self._listeners: List[StateListener] = []
        self._generation_token = 0
        self._document_token = 0

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception as exc:
                logger.error("State listener %r failed: %s", listener, exc, exc_info=True)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def _fail(self, exc: BaseException) -> None:
        message = user_message(exc)
        logger.warning("Operation failed: %s (%s)", message, exc)
        self.state.show_error(message)
        self._notify()

    def _succeed(self, message: str) -> None:
        self.state.show_success(message)
        self._notify()

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def edit(self, content: str) -> bool:
        """User keystroke path. Refused while the animator owns the buffer."""
        if not self.state.buffer.edit(content):
            logger.debug("Edit ignored: buffer is frozen by typing animation")
            return False
        self._notify()
        return True

    def set_title(self, title: str) -> None:
        self.state.title = title
        self._notify()

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    async def generate(self, prompt: str) -> bool:
        """
        Ask for generated content and reveal it into the buffer.

        Returns True if the result was applied.  Empty prompts fail locally;
        calls while a generation is outstanding are no-ops returning False.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            self._fail(ValidationError("Please enter a prompt."))
            return False
        if self.state.generating:
            logger.info("generate rejected: a generation is already in flight")
            return False

        self._generation_token += 1
        token = self._generation_token
        snapshot = self.state.buffer.content
        self.state.generating = True
        self.state.error.clear()
        self._notify()

        logger.info("generate #%d: %r", token, truncate_text(prompt, 60))
        task: Optional[asyncio.Task] = None
        try:
            try:
                generated = await self.generator.generate(prompt, snapshot)
            except Exception as exc:
                if token != self._generation_token:
                    logger.info("generate #%d failed after being superseded: %s", token, exc)
                    return False
                self.state.generating = False
                self._fail(exc)
                return False

            if token != self._generation_token:
                logger.info("generate #%d discarded: superseded by #%d", token, self._generation_token)
                return False

            # Append to what is on screen now, so keystrokes typed while waiting survive.
            base = self.state.buffer.content
            if snapshot and base:
                full_text, start = base + SEPARATOR + generated, len(base) + len(SEPARATOR)
            else:
                full_text, start = generated, 0

            task = await self.animator.animate(full_text, start)
            await asyncio.wait({task})
            return not task.cancelled() and self.state.buffer.content == full_text
        finally:
            # Also reached when the caller's task is cancelled mid-await.
            if token == self._generation_token:
                if task is not None and not task.done():
                    task.cancel()
                if self.state.generating:
                    self.state.generating = False
                    self._notify()

    async def cancel_generation(self) -> None:
        """
        Abandon the outstanding generation.

        The network call is not interrupted; its result will be discarded as
        stale.  A running typing animation is halted where it is.
        """
        self._generation_token += 1
        await self.animator.stop()
        if self.state.generating:
            logger.info("generation abandoned (token now #%d)", self._generation_token)
            self.state.generating = False
            self._notify()

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(
        self, title: Optional[str] = None, content: Optional[str] = None
    ) -> Optional[DocumentRecord]:
        """
        Create the document on first save, overwrite it afterwards.

        Empty content fails locally without a network call.
        """
        content = self.state.buffer.content if content is None else content
        title = resolve_title(self.state.title if title is None else title)
        if not content.strip():
            self._fail(ValidationError("No content to save"))
            return None
        if self.state.saving:
            logger.info("save rejected: a save is already in flight")
            self._fail(ValidationError("A save is already in progress."))
            return None

        self.state.saving = True
        self.state.error.clear()
        self._notify()

        document_id = self.state.document_id
        session_token = self._document_token
        try:
            if document_id is None:
                record = await self.store.create(title, content)
            else:
                record = await self.store.update(document_id, title, content)
        except NotFound as exc:
            # Deleted elsewhere: the next save creates a fresh document.
            if session_token == self._document_token:
                self.state.document_id = None
            self.state.saving = False
            self._fail(exc)
            return None
        except Exception as exc:
            self.state.saving = False
            self._fail(exc)
            return None

        self.state.saving = False
        if session_token != self._document_token:
            # The session switched documents while the request was out.
            logger.info("save of %s finished after a document switch; not applied", record.id)
            self._notify()
            return record
        if document_id is None:
            self.state.document_id = record.id
            logger.info("Document created id=%s", record.id)
        self.state.title = record.title
        self._succeed(SAVED_MESSAGE)
        return record

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(
        self,
        content: Optional[str] = None,
        title: Optional[str] = None,
        output_dir: Optional[Path] = None,
    ) -> Optional[Path]:
        """Render a snapshot of the content to PDF. Never touches the buffer."""
        snapshot = self.state.buffer.content if content is None else content
        title = resolve_title(self.state.title if title is None else title)
        if not snapshot.strip():
            self._fail(ValidationError("No content to export"))
            return None
        if self.animator.running:
            self._fail(ValidationError("Please wait for the AI to finish writing before exporting."))
            return None
        if self.state.exporting:
            logger.info("export rejected: an export is already in flight")
            self._fail(ValidationError("An export is already in progress."))
            return None

        self.state.exporting = True
        self.state.error.clear()
        self._notify()
        try:
            path = await self.exporter.export(snapshot, title, output_dir)
        except Exception as exc:
            self.state.exporting = False
            self._fail(exc)
            return None

        self.state.exporting = False
        self._succeed(f"Exported {path.name}")
        return path

    # ------------------------------------------------------------------
    # Document switching
    # ------------------------------------------------------------------

    async def load(self, document_id: str) -> Optional[DocumentRecord]:
        """Replace the session with a stored document."""
        await self.cancel_generation()
        self._document_token += 1
        token = self._document_token
        try:
            record = await self.store.get(document_id)
        except Exception as exc:
            if token == self._document_token:
                self._fail(exc)
            return None

        if token != self._document_token:
            logger.info("load of %s discarded: superseded by a later switch", document_id)
            return None

        self.state.buffer.replace(record.content)
        self.state.title = record.title
        self.state.document_id = record.id
        self._notify()
        return record

    async def new_document(self) -> None:
        await self.cancel_generation()
        self._document_token += 1
        self.state.buffer.replace("")
        self.state.title = settings.DEFAULT_DOCUMENT_TITLE
        self.state.document_id = None
        self.state.error.clear()
        self.state.success.clear()
        self._notify()


def build_coordinator(session: ApiSession, output_dir: Path = Path(".")) -> RequestCoordinator:
    """Wire a coordinator to the real API clients and the PDF exporter."""
    return RequestCoordinator(
        store=DocumentStoreClient(session),
        generator=GenerationClient(session),
        exporter=PdfExporter(output_dir),
    )
