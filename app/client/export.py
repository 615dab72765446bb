"""
PDF export of the editor's HTML.

The HTML is parsed with BeautifulSoup and turned into reportlab flowables
on an A4 page with 10 mm margins.  Rendering is CPU-bound, so ``export``
runs it in a worker thread on a snapshot string; the buffer itself is
never touched.
"""
from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union
from xml.sax.saxutils import escape, quoteattr

import aiofiles
from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    Flowable,
    HRFlowable,
    Paragraph,
    Preformatted,
    SimpleDocTemplate,
    Spacer,
)

from app.utils.helpers import safe_filename

logger = logging.getLogger(__name__)

_INLINE_TAGS = {
    "strong": "b",
    "b": "b",
    "em": "i",
    "i": "i",
    "u": "u",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
    "sub": "sub",
    "sup": "super",
}
_BLOCK_TAGS = {
    "p", "div", "section", "article", "blockquote", "pre", "ul", "ol", "li", "hr",
    "h1", "h2", "h3", "h4", "h5", "h6", "table",
}


def _styles():
    sheet = getSampleStyleSheet()
    body = ParagraphStyle(
        "Body",
        parent=sheet["Normal"],
        fontName="Helvetica",
        fontSize=12,
        leading=18,  # 1.5 line height
        alignment=TA_LEFT,
        spaceAfter=6,
    )
    return {
        "body": body,
        "quote": ParagraphStyle("Quote", parent=body, leftIndent=12 * mm, textColor=colors.HexColor("#444444")),
        "item": ParagraphStyle("Item", parent=body, leftIndent=8 * mm, bulletIndent=3 * mm, spaceAfter=2),
        "code": ParagraphStyle("CodeBlock", parent=sheet["Code"], fontSize=9, leading=12),
        **{f"h{n}": sheet[f"Heading{n}"] for n in range(1, 7)},
    }


class HtmlToFlowables:
    """Walks an HTML fragment and emits reportlab flowables."""

    def __init__(self) -> None:
        self.styles = _styles()

    def convert(self, html: str) -> List[Flowable]:
        soup = BeautifulSoup(html or "", "html.parser")
        story = list(self._blocks(soup.children))
        if not story:
            story.append(Spacer(1, 1))
        return story

    # ------------------------------------------------------------------

    def _blocks(self, nodes: Iterable, style_name: str = "body") -> Iterable[Flowable]:
        inline_run: List[Union[Tag, NavigableString]] = []

        for node in nodes:
            if isinstance(node, Tag) and node.name in _BLOCK_TAGS:
                if inline_run:
                    yield from self._paragraph(inline_run, style_name)
                    inline_run = []
                yield from self._block(node)
            elif isinstance(node, Tag) and node.name == "br" and not inline_run:
                yield Spacer(1, 6)
            else:
                inline_run.append(node)

        if inline_run:
            yield from self._paragraph(inline_run, style_name)

    def _block(self, tag: Tag) -> Iterable[Flowable]:
        name = tag.name
        if name in ("h1", "h2", "h3", "h4", "h5", "h6"):
            yield from self._paragraph(tag.children, name)
        elif name == "hr":
            yield HRFlowable(width="100%", thickness=0.5, color=colors.HexColor("#999999"), spaceBefore=4, spaceAfter=4)
        elif name == "pre":
            yield Preformatted(tag.get_text(), self.styles["code"])
        elif name == "blockquote":
            yield from self._blocks(tag.children, "quote")
        elif name in ("ul", "ol"):
            yield from self._list(tag)
        elif name == "table":
            for row in tag.find_all("tr"):
                cells = [cell.get_text(" ", strip=True) for cell in row.find_all(["td", "th"])]
                yield Paragraph(escape(" | ".join(cells)), self.styles["body"])
        else:
            # p, div, section, article and stray li may hold nested blocks.
            yield from self._blocks(tag.children)

    def _list(self, tag: Tag) -> Iterable[Flowable]:
        ordered = tag.name == "ol"
        for index, item in enumerate(tag.find_all("li", recursive=False), start=1):
            bullet = f"{index}." if ordered else "•"
            nested, inline = [], []
            for child in item.children:
                is_list = isinstance(child, Tag) and child.name in ("ul", "ol")
                (nested if is_list else inline).append(child)
            markup = self._inline(inline).strip()
            if markup:
                yield Paragraph(markup, self.styles["item"], bulletText=bullet)
            for sub in nested:
                yield from self._list(sub)

    def _paragraph(self, nodes: Iterable, style_name: str) -> Iterable[Flowable]:
        markup = self._inline(nodes).strip()
        if markup:
            yield Paragraph(markup, self.styles[style_name])

    def _inline(self, nodes: Iterable) -> str:
        parts: List[str] = []
        for node in nodes:
            if isinstance(node, Comment):
                continue
            if isinstance(node, NavigableString):
                parts.append(escape(str(node)))
                continue
            if not isinstance(node, Tag):
                continue
            inner = self._inline(node.children)
            name = node.name
            if name == "br":
                parts.append("<br/>")
            elif name in _INLINE_TAGS:
                tag = _INLINE_TAGS[name]
                parts.append(f"<{tag}>{inner}</{tag}>")
            elif name == "a" and node.get("href"):
                parts.append(f'<a href={quoteattr(node["href"])} color="blue">{inner}</a>')
            elif name == "code":
                parts.append(f'<font face="Courier">{inner}</font>')
            else:
                parts.append(inner)
        return "".join(parts)


class PdfExporter:
    """Renders HTML snapshots to PDF files."""

    def __init__(self, output_dir: Union[str, Path] = ".") -> None:
        self.output_dir = Path(output_dir)
        self._converter = HtmlToFlowables()

    def render(self, html: str, title: str = "") -> bytes:
        """Synchronously render *html* to PDF bytes."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=10 * mm,
            rightMargin=10 * mm,
            topMargin=10 * mm,
            bottomMargin=10 * mm,
            title=title,
        )
        doc.build(self._converter.convert(html))
        return buffer.getvalue()

    async def export(self, html: str, title: str = "", output_dir: Optional[Path] = None) -> Path:
        """
        Render *html* off the event loop and write ``<title>.pdf``.

        Returns the written path.
        """
        snapshot = str(html)
        pdf_bytes = await asyncio.to_thread(self.render, snapshot, title)

        directory = Path(output_dir) if output_dir is not None else self.output_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / safe_filename(title)

        async with aiofiles.open(path, "wb") as fh:
            await fh.write(pdf_bytes)

        logger.info("Exported %d bytes to %s", len(pdf_bytes), path)
        return path
