"""
Typing animation: reveals generated text into the buffer a few characters
at a time.

Only one animation runs per animator.  Starting a new one cancels the
running task and waits for it to finish tearing down before the new task
is scheduled, so two animations never write the buffer in the same run.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Iterator, Optional

from app.client.session import ContentBuffer
from app.config import settings

logger = logging.getLogger(__name__)


def prefixes(full_text: str, start: int = 0, step: int = 1) -> Iterator[str]:
    """
    Yield growing prefixes of *full_text*, ending with *full_text* itself.

    *start* is the length of the prefix already on screen (nothing shorter is
    yielded); *step* is the number of characters revealed per prefix.
    """
    if step < 1:
        raise ValueError("step must be >= 1")
    end = max(start, 0)
    while end < len(full_text):
        end = min(end + step, len(full_text))
        yield full_text[:end]


class TypingAnimator:
    """Drives ``prefixes`` into a ContentBuffer on a fixed tick."""

    def __init__(
        self,
        buffer: ContentBuffer,
        interval: Optional[float] = None,
        characters_per_tick: int = 1,
        on_tick: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.buffer = buffer
        self.interval = settings.TYPING_INTERVAL_MS / 1000 if interval is None else interval
        self.characters_per_tick = characters_per_tick
        self.on_tick = on_tick
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def animate(self, full_text: str, start: int = 0) -> asyncio.Task:
        """
        Halt any running animation, then start revealing *full_text*.

        *start* characters are written immediately; the rest arrive one tick
        at a time.  Returns the task; awaiting it waits for completion, and it
        ends cancelled if superseded or stopped.
        """
        await self.stop()

        self.buffer.freeze()
        self.buffer.replace(full_text[:start])
        self._task = asyncio.create_task(self._run(full_text, start))
        return self._task

    async def stop(self) -> None:
        """Cancel the running animation (if any) and wait until it has halted."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Typing animation halted")

    async def _run(self, full_text: str, start: int) -> None:
        try:
            for prefix in prefixes(full_text, start, self.characters_per_tick):
                await asyncio.sleep(self.interval)
                self.buffer.replace(prefix)
                if self.on_tick is not None:
                    self.on_tick(prefix)
            # Covers empty text and start beyond the end.
            if self.buffer.content != full_text:
                self.buffer.replace(full_text)
                if self.on_tick is not None:
                    self.on_tick(full_text)
        finally:
            self.buffer.unfreeze()
