"""
Editor session state: the content buffer, in-flight flags and the two
auto-expiring status messages.

The session is a plain object owned by one RequestCoordinator; nothing
here is global.
"""
from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from typing import Callable, Optional

from app.config import settings

logger = logging.getLogger(__name__)


class Operation(str, enum.Enum):
    """Dominant in-flight operation, in priority order."""

    IDLE = "idle"
    GENERATING = "generating"
    SAVING = "saving"
    EXPORTING = "exporting"


class ContentBuffer:
    """
    The document's HTML as currently shown in the editor.

    While frozen (a typing animation is running) user edits are refused;
    only the animator writes, through ``replace``.
    """

    def __init__(self, content: str = "") -> None:
        self._content = content
        self._frozen = False

    @property
    def content(self) -> str:
        return self._content

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def is_empty(self) -> bool:
        return not self._content.strip()

    def freeze(self) -> None:
        self._frozen = True

    def unfreeze(self) -> None:
        self._frozen = False

    def edit(self, content: str) -> bool:
        """Apply a user edit. Returns False if the buffer is frozen."""
        if self._frozen:
            return False
        self._content = content
        return True

    def replace(self, content: str) -> None:
        """Unconditional write used by the animator and the coordinator."""
        self._content = content

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "editable"
        return f"<ContentBuffer {len(self._content)} chars {state}>"


class ExpiringMessage:
    """
    A status line that clears itself after a TTL.

    Setting a new message cancels the pending expiry, so a newer message is
    never wiped by an older message's timer.
    """

    def __init__(self, on_expire: Optional[Callable[[], None]] = None) -> None:
        self.text: Optional[str] = None
        self.on_expire = on_expire
        self._handle: Optional[asyncio.TimerHandle] = None

    def set(self, text: str, ttl: float) -> None:
        self._cancel_timer()
        self.text = text
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): keep the message until replaced.
            return
        self._handle = loop.call_later(ttl, self._expire)

    def clear(self) -> None:
        self._cancel_timer()
        self.text = None

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _expire(self) -> None:
        self._handle = None
        self.text = None
        if self.on_expire is not None:
            self.on_expire()


@dataclasses.dataclass
class SessionState:
    """Everything the editor UI renders besides the toolbar."""

    buffer: ContentBuffer = dataclasses.field(default_factory=ContentBuffer)
    title: str = settings.DEFAULT_DOCUMENT_TITLE
    document_id: Optional[str] = None
    generating: bool = False
    saving: bool = False
    exporting: bool = False
    error: ExpiringMessage = dataclasses.field(default_factory=ExpiringMessage)
    success: ExpiringMessage = dataclasses.field(default_factory=ExpiringMessage)

    @property
    def operation(self) -> Operation:
        if self.generating:
            return Operation.GENERATING
        if self.saving:
            return Operation.SAVING
        if self.exporting:
            return Operation.EXPORTING
        return Operation.IDLE

    @property
    def content(self) -> str:
        return self.buffer.content

    @property
    def last_error(self) -> Optional[str]:
        return self.error.text

    @property
    def last_success(self) -> Optional[str]:
        return self.success.text

    def show_error(self, text: str, ttl: Optional[float] = None) -> None:
        self.error.set(text, settings.ERROR_MESSAGE_TTL if ttl is None else ttl)

    def show_success(self, text: str, ttl: Optional[float] = None) -> None:
        self.success.set(text, settings.SUCCESS_MESSAGE_TTL if ttl is None else ttl)
