"""Tests for the request coordinator: reentrancy, staleness, append policy, save, export."""
import asyncio
from pathlib import Path
from typing import List, Optional

import pytest

from app.client.animator import TypingAnimator
from app.client.api import DocumentRecord
from app.client.coordinator import SAVED_MESSAGE, RequestCoordinator
from app.client.session import Operation, SessionState
from app.errors import NotFound, Overloaded, StoreUnavailable, classify_vendor_error
from app.utils.helpers import safe_filename


class FakeStore:
    def __init__(self):
        self.calls: List[tuple] = []
        self.documents = {}
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self._next_id = 1

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()

    async def create(self, title, content):
        self.calls.append(("create", title, content))
        await self._wait()
        if self.error:
            raise self.error
        record = DocumentRecord(id=f"doc-{self._next_id}", title=title, content=content)
        self._next_id += 1
        self.documents[record.id] = record
        return record

    async def update(self, document_id, title, content):
        self.calls.append(("update", document_id, title, content))
        await self._wait()
        if self.error:
            raise self.error
        record = DocumentRecord(id=document_id, title=title, content=content)
        self.documents[document_id] = record
        return record

    async def get(self, document_id):
        self.calls.append(("get", document_id))
        if document_id not in self.documents:
            raise NotFound()
        return self.documents[document_id]


class ControlledGenerator:
    """Each call returns a future the test resolves by hand."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.futures: List[asyncio.Future] = []

    async def generate(self, prompt, current_content=""):
        self.calls.append((prompt, current_content))
        future = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return await future


class FakeExporter:
    def __init__(self):
        self.calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def export(self, html, title="", output_dir=None):
        self.calls.append((html, title))
        if self.gate is not None:
            await self.gate.wait()
        return Path("/tmp") / safe_filename(title)


def make_coordinator(interval: float = 0, content: str = ""):
    state = SessionState()
    state.buffer.replace(content)
    animator = TypingAnimator(state.buffer, interval=interval)
    store, generator, exporter = FakeStore(), ControlledGenerator(), FakeExporter()
    coordinator = RequestCoordinator(store, generator, exporter, state=state, animator=animator)
    return coordinator, store, generator, exporter


async def _started(generator: ControlledGenerator, count: int) -> None:
    while len(generator.futures) < count:
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Generate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_generate_into_empty_buffer_replaces():
    coord, _, generator, _ = make_coordinator()
    task = asyncio.create_task(coord.generate("Write a greeting"))
    await _started(generator, 1)
    assert coord.state.operation is Operation.GENERATING

    generator.futures[0].set_result("<p>Hello</p>")
    assert await task is True
    assert coord.state.content == "<p>Hello</p>"
    assert coord.state.operation is Operation.IDLE
    assert generator.calls == [("Write a greeting", "")]


@pytest.mark.asyncio
async def test_generate_appends_after_existing_content():
    coord, _, generator, _ = make_coordinator(content="<p>Hello</p>")
    task = asyncio.create_task(coord.generate("continue"))
    await _started(generator, 1)
    generator.futures[0].set_result("C")

    assert await task is True
    assert coord.state.content == "<p>Hello</p>\n\nC"
    assert generator.calls[0][1] == "<p>Hello</p>"


@pytest.mark.asyncio
async def test_append_keeps_edits_made_while_waiting():
    coord, _, generator, _ = make_coordinator(content="<p>Hello</p>")
    task = asyncio.create_task(coord.generate("continue"))
    await _started(generator, 1)

    assert coord.edit("<p>Hello, world</p>") is True
    generator.futures[0].set_result("<p>More</p>")
    await task

    assert coord.state.content == "<p>Hello, world</p>\n\n<p>More</p>"


@pytest.mark.asyncio
async def test_second_generate_rejected_while_outstanding():
    coord, _, generator, _ = make_coordinator()
    first = asyncio.create_task(coord.generate("one"))
    await _started(generator, 1)

    assert await coord.generate("two") is False
    assert len(generator.calls) == 1

    generator.futures[0].set_result("<p>one</p>")
    assert await first is True


@pytest.mark.asyncio
async def test_abandoned_result_is_discarded():
    coord, _, generator, _ = make_coordinator()
    task_a = asyncio.create_task(coord.generate("A"))
    await _started(generator, 1)

    await coord.cancel_generation()
    assert coord.state.generating is False

    task_b = asyncio.create_task(coord.generate("B"))
    await _started(generator, 2)
    generator.futures[1].set_result("<p>B</p>")
    assert await task_b is True

    # A resolves after B: it must not touch the buffer or the flags.
    generator.futures[0].set_result("<p>A</p>")
    assert await task_a is False
    assert coord.state.content == "<p>B</p>"
    assert coord.state.generating is False


@pytest.mark.asyncio
async def test_abandoned_failure_is_silent():
    coord, _, generator, _ = make_coordinator()
    task = asyncio.create_task(coord.generate("A"))
    await _started(generator, 1)
    await coord.cancel_generation()

    generator.futures[0].set_exception(classify_vendor_error("503 unavailable"))
    assert await task is False
    assert coord.state.last_error is None


@pytest.mark.asyncio
async def test_blank_prompt_fails_locally():
    coord, _, generator, _ = make_coordinator()
    assert await coord.generate("   ") is False
    assert generator.calls == []
    assert coord.state.last_error == "Please enter a prompt."


@pytest.mark.asyncio
async def test_vendor_error_becomes_message():
    coord, _, generator, _ = make_coordinator(content="<p>keep</p>")
    task = asyncio.create_task(coord.generate("x"))
    await _started(generator, 1)
    generator.futures[0].set_exception(classify_vendor_error("[429 Too Many Requests] quota"))

    assert await task is False
    assert coord.state.last_error == Overloaded.message
    assert coord.state.content == "<p>keep</p>"
    assert coord.state.generating is False


@pytest.mark.asyncio
async def test_edit_refused_during_animation():
    coord, _, generator, _ = make_coordinator(interval=0.01)
    task = asyncio.create_task(coord.generate("x"))
    await _started(generator, 1)
    generator.futures[0].set_result("<p>a fairly long paragraph</p>")
    await asyncio.sleep(0.03)

    assert coord.state.buffer.frozen
    assert coord.edit("typed") is False
    await coord.cancel_generation()
    await task
    assert coord.edit("typed") is True


@pytest.mark.asyncio
async def test_listeners_notified_and_unsubscribed():
    coord, _, _, _ = make_coordinator()
    seen = []
    unsubscribe = coord.subscribe(lambda state: seen.append(state.content))

    coord.edit("a")
    unsubscribe()
    coord.edit("b")
    assert seen == ["a"]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_others():
    coord, _, _, _ = make_coordinator()
    seen = []

    def broken(state):
        raise RuntimeError("boom")

    coord.subscribe(broken)
    coord.subscribe(lambda state: seen.append(state.content))
    assert coord.edit("a") is True
    assert seen == ["a"]


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_save_empty_content_makes_no_call():
    coord, store, _, _ = make_coordinator(content="  ")
    assert await coord.save() is None
    assert store.calls == []
    assert coord.state.last_error == "No content to save"


@pytest.mark.asyncio
async def test_first_save_creates_then_updates():
    coord, store, _, _ = make_coordinator(content="<p>v1</p>")
    coord.set_title("Notes")

    record = await coord.save()
    assert record.id == "doc-1"
    assert coord.state.document_id == "doc-1"
    assert coord.state.last_success == SAVED_MESSAGE

    coord.edit("<p>v2</p>")
    await coord.save()
    assert store.calls == [
        ("create", "Notes", "<p>v1</p>"),
        ("update", "doc-1", "Notes", "<p>v2</p>"),
    ]


@pytest.mark.asyncio
async def test_blank_title_saved_as_default():
    coord, store, _, _ = make_coordinator(content="<p>x</p>")
    await coord.save(title="  ")
    assert store.calls[0][1] == "Untitled Document"


@pytest.mark.asyncio
async def test_save_of_deleted_document_forgets_id():
    coord, store, _, _ = make_coordinator(content="<p>x</p>")
    coord.state.document_id = "gone"
    store.error = NotFound()

    assert await coord.save() is None
    assert coord.state.document_id is None
    assert coord.state.last_error == NotFound.message
    assert coord.state.saving is False


@pytest.mark.asyncio
async def test_save_store_unavailable():
    coord, store, _, _ = make_coordinator(content="<p>x</p>")
    store.error = StoreUnavailable()
    assert await coord.save() is None
    assert coord.state.last_error == StoreUnavailable.message
    assert coord.state.document_id is None


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_export_uses_title_for_filename():
    coord, _, _, exporter = make_coordinator(content="<h1>Report</h1>")
    coord.set_title("Q3 Report")

    path = await coord.export()
    assert path.name == "Q3 Report.pdf"
    assert exporter.calls == [("<h1>Report</h1>", "Q3 Report")]
    assert coord.state.last_success == "Exported Q3 Report.pdf"
    assert coord.state.content == "<h1>Report</h1>"


@pytest.mark.asyncio
async def test_export_empty_content():
    coord, _, _, exporter = make_coordinator()
    assert await coord.export() is None
    assert exporter.calls == []
    assert coord.state.last_error == "No content to export"


@pytest.mark.asyncio
async def test_export_refused_while_animating():
    coord, _, generator, exporter = make_coordinator(interval=0.01)
    task = asyncio.create_task(coord.generate("x"))
    await _started(generator, 1)
    generator.futures[0].set_result("<p>" + "word " * 40 + "</p>")
    await asyncio.sleep(0.03)
    assert coord.animator.running

    assert await coord.export() is None
    assert exporter.calls == []
    assert "finish writing" in coord.state.last_error

    await coord.cancel_generation()
    await task


# ---------------------------------------------------------------------------
# Document switching
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_load_replaces_session():
    coord, store, _, _ = make_coordinator(content="<p>draft</p>")
    store.documents["doc-9"] = DocumentRecord(id="doc-9", title="Stored", content="<p>stored</p>")

    record = await coord.load("doc-9")
    assert record.id == "doc-9"
    assert coord.state.content == "<p>stored</p>"
    assert coord.state.title == "Stored"
    assert coord.state.document_id == "doc-9"


@pytest.mark.asyncio
async def test_load_missing_document_keeps_buffer():
    coord, _, _, _ = make_coordinator(content="<p>draft</p>")
    assert await coord.load("nope") is None
    assert coord.state.content == "<p>draft</p>"
    assert coord.state.last_error == NotFound.message


@pytest.mark.asyncio
async def test_load_abandons_outstanding_generation():
    coord, store, generator, _ = make_coordinator()
    store.documents["doc-2"] = DocumentRecord(id="doc-2", title="Other", content="<p>other</p>")
    task = asyncio.create_task(coord.generate("x"))
    await _started(generator, 1)

    await coord.load("doc-2")
    generator.futures[0].set_result("<p>late</p>")
    assert await task is False
    assert coord.state.content == "<p>other</p>"


@pytest.mark.asyncio
async def test_new_document_resets_session():
    coord, _, _, _ = make_coordinator(content="<p>x</p>")
    coord.state.document_id = "doc-1"
    coord.set_title("Old")

    await coord.new_document()
    assert coord.state.content == ""
    assert coord.state.title == "Untitled Document"
    assert coord.state.document_id is None


# ---------------------------------------------------------------------------
# Caller cancellation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cancelled_caller_during_request_clears_flag():
    coord, _, generator, _ = make_coordinator()
    task = asyncio.create_task(coord.generate("x"))
    await _started(generator, 1)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert coord.state.generating is False

    retry = asyncio.create_task(coord.generate("y"))
    await _started(generator, 2)
    generator.futures[1].set_result("<p>y</p>")
    assert await retry is True
    assert coord.state.content == "<p>y</p>"


@pytest.mark.asyncio
async def test_cancelled_caller_during_animation_stops_it():
    coord, _, generator, _ = make_coordinator(interval=0.01)
    task = asyncio.create_task(coord.generate("x"))
    await _started(generator, 1)
    generator.futures[0].set_result("<p>" + "word " * 40 + "</p>")
    await asyncio.sleep(0.03)
    assert coord.animator.running

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.02)

    assert coord.state.generating is False
    assert not coord.animator.running
    assert not coord.state.buffer.frozen


# ---------------------------------------------------------------------------
# Saves racing a document switch
# ---------------------------------------------------------------------------

async def _store_called(store: FakeStore, count: int = 1) -> None:
    while len(store.calls) < count:
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_save_finishing_after_load_leaves_new_session_alone():
    coord, store, _, _ = make_coordinator(content="<p>A</p>")
    coord.set_title("A")
    store.documents["doc-B"] = DocumentRecord(id="doc-B", title="B", content="<p>B</p>")
    store.gate = asyncio.Event()

    save = asyncio.create_task(coord.save())
    await _store_called(store)
    await coord.load("doc-B")
    store.gate.set()
    record = await save

    assert record.id == "doc-1"
    assert store.documents["doc-1"].content == "<p>A</p>"
    assert coord.state.document_id == "doc-B"
    assert coord.state.title == "B"
    assert coord.state.content == "<p>B</p>"
    assert coord.state.saving is False
    assert coord.state.last_success is None

    # The next save writes B back to B, never over A.
    await coord.save()
    assert store.calls[-1] == ("update", "doc-B", "B", "<p>B</p>")
    assert store.documents["doc-1"].content == "<p>A</p>"


@pytest.mark.asyncio
async def test_save_finishing_after_new_document_is_not_applied():
    coord, store, _, _ = make_coordinator(content="<p>A</p>")
    store.gate = asyncio.Event()

    save = asyncio.create_task(coord.save())
    await _store_called(store)
    await coord.new_document()
    store.gate.set()
    await save

    assert coord.state.document_id is None
    assert coord.state.title == "Untitled Document"
    assert coord.state.content == ""


@pytest.mark.asyncio
async def test_stale_not_found_keeps_loaded_id():
    coord, store, _, _ = make_coordinator(content="<p>A</p>")
    coord.state.document_id = "gone"
    store.documents["doc-B"] = DocumentRecord(id="doc-B", title="B", content="<p>B</p>")
    store.gate = asyncio.Event()

    save = asyncio.create_task(coord.save())
    await _store_called(store)
    await coord.load("doc-B")
    store.error = NotFound()
    store.gate.set()

    assert await save is None
    assert coord.state.document_id == "doc-B"


@pytest.mark.asyncio
async def test_earlier_load_finishing_last_is_discarded():
    coord, store, _, _ = make_coordinator()
    store.documents["doc-A"] = DocumentRecord(id="doc-A", title="A", content="<p>A</p>")
    gate = asyncio.Event()
    plain_get = store.get

    async def slow_get(document_id):
        if document_id == "doc-A":
            await gate.wait()
        return await plain_get(document_id)

    store.get = slow_get
    first = asyncio.create_task(coord.load("doc-A"))
    await asyncio.sleep(0)
    await coord.new_document()
    gate.set()

    assert await first is None
    assert coord.state.document_id is None
    assert coord.state.content == ""


# ---------------------------------------------------------------------------
# Double clicks
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_second_save_while_saving_shows_message():
    coord, store, _, _ = make_coordinator(content="<p>x</p>")
    store.gate = asyncio.Event()

    first = asyncio.create_task(coord.save())
    await _store_called(store)
    assert await coord.save() is None
    assert coord.state.last_error == "A save is already in progress."
    assert len(store.calls) == 1

    store.gate.set()
    assert (await first).id == "doc-1"


@pytest.mark.asyncio
async def test_second_export_while_exporting_shows_message():
    coord, _, _, exporter = make_coordinator(content="<p>x</p>")
    exporter.gate = asyncio.Event()

    first = asyncio.create_task(coord.export())
    while not exporter.calls:
        await asyncio.sleep(0)
    assert await coord.export() is None
    assert coord.state.last_error == "An export is already in progress."
    assert len(exporter.calls) == 1

    exporter.gate.set()
    assert (await first).name == "document.pdf"
