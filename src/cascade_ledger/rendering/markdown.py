"""
Markdown rendering for phase documents.

Converts the markdown subset used by plan, execution and verification
documents into sanitized markup, and extracts the pieces shown around it
(table of contents, metadata, preview).
"""

import html
import logging
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from cascade_ledger.artifacts import filenames
from cascade_ledger.artifacts.store import ArtifactStore
from cascade_ledger.core.exceptions import ArtifactStoreError
from cascade_ledger.rendering.passes import (
    FENCE_CLOSE,
    FENCE_OPEN,
    RenderPass,
    default_passes,
    protect_code,
    slugify,
    strip_inline_markdown,
)
from cascade_ledger.rendering.sanitizer import Sanitizer

logger = logging.getLogger(__name__)

HEADER_LINE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*$")
TITLE_LINE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)
CREATED_FIELD = re.compile(r"\*\*Created:\*\*\s+(.+)$", re.MULTILINE)
PLAN_ID_FIELD = re.compile(r"\*\*Plan ID:\*\*\s+(.+)$", re.MULTILINE)
FIELD_LINE = re.compile(r"\*\*[\w\s]+:\*\*.*$", re.MULTILINE)
HEADING_LINE = re.compile(r"^#.*$", re.MULTILINE)
TITLE_PREFIXES = re.compile(r"^(?:Pre-Execution Plan|Post-Execution Report|Verification Report): ")

NOT_FOUND_TITLE = "Plan Not Found"
NOT_FOUND_CONTENT = "# Plan Not Found\n\nThe requested plan file could not be found."
LOAD_ERROR_TITLE = "Error Loading Plan"


class Header(BaseModel):
    """One markdown heading."""

    model_config = ConfigDict(frozen=True)

    level: int = Field(ge=1, le=6)
    text: str
    id: str


class DocumentMetadata(BaseModel):
    """Fields read from a document's text."""

    title: str | None = None
    created: str | None = None
    plan_id: str | None = None


class RenderedDocument(BaseModel):
    """Loaded document content with its metadata."""

    path: Path
    content: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    found: bool = True


class DocumentView(BaseModel):
    """Everything needed to display one document."""

    path: Path
    title: str
    body_html: str
    toc_html: str
    metadata: DocumentMetadata


class MarkdownRenderer:
    """
    Applies the ordered render passes and the final markup filter.

    Code is tokenized out before the passes run, so nothing inside a
    code span or fenced block is interpreted as markdown.
    """

    def __init__(
        self,
        sanitizer: Sanitizer | None = None,
        passes: list[RenderPass] | None = None,
    ):
        self._sanitizer = sanitizer or Sanitizer()
        self._passes = passes if passes is not None else default_passes(self._sanitizer)

    @property
    def sanitizer(self) -> Sanitizer:
        return self._sanitizer

    @property
    def passes(self) -> list[RenderPass]:
        return list(self._passes)

    def render(self, text: str) -> str:
        """Render markdown text to markup. Empty input yields an empty string."""
        if not text:
            return ""

        document = protect_code(text, escape=not self._sanitizer.bypass_enabled)
        for render_pass in self._passes:
            document = render_pass.transform(document)
        return self._sanitizer.clean_markup(document)


def render(text: str, sanitizer: Sanitizer | None = None) -> str:
    """Render markdown with the default passes."""
    return MarkdownRenderer(sanitizer).render(text)


def extract_headers(text: str) -> list[Header]:
    """
    Headings in document order, skipping fenced code.

    Ids match the ones the renderer puts on heading wrappers.
    """
    headers = []
    in_fence = False
    for line in text.split("\n"):
        if in_fence:
            in_fence = not FENCE_CLOSE.match(line)
            continue
        if FENCE_OPEN.match(line):
            in_fence = True
            continue

        match = HEADER_LINE.match(line)
        if match:
            plain = strip_inline_markdown(match.group(2).strip())
            headers.append(
                Header(level=len(match.group(1)), text=plain, id=slugify(plain))
            )
    return headers


def build_toc(headers: list[Header]) -> str:
    """
    Nested table of contents.

    A deeper header opens a list inside the current item; a shallower one
    closes lists until the current level is reached. Headers shallower
    than the first stay in the root list.
    """
    lines = ['<ul class="toc-list">']
    stack: list[int] = []

    for header in headers:
        if not stack:
            stack.append(header.level)
        elif header.level > stack[-1]:
            lines.append("<ul>")
            stack.append(header.level)
        else:
            lines.append("</li>")
            while len(stack) > 1 and stack[-1] > header.level:
                stack.pop()
                lines.append("</ul>")
                if stack[-1] < header.level:
                    lines.append("<ul>")
                    stack.append(header.level)
                    break
                lines.append("</li>")

        anchor = html.escape(header.id, quote=True)
        label = html.escape(header.text, quote=False)
        lines.append(f'<li class="toc-list-item"><a href="#{anchor}">{label}</a>')

    if stack:
        lines.append("</li>")
        while len(stack) > 1:
            stack.pop()
            lines.append("</ul>")
            lines.append("</li>")

    lines.append("</ul>")
    return "\n".join(lines)


def extract_metadata(text: str) -> DocumentMetadata:
    """Title from the first H1, plus the Created and Plan ID fields."""
    metadata = DocumentMetadata()
    for field, pattern in (
        ("title", TITLE_LINE),
        ("created", CREATED_FIELD),
        ("plan_id", PLAN_ID_FIELD),
    ):
        match = pattern.search(text)
        if match:
            setattr(metadata, field, match.group(1).strip())
    return metadata


def preview(text: str, max_length: int = 150) -> str:
    """Leading paragraphs without headings or field lines, truncated with '...'."""
    body = FIELD_LINE.sub("", HEADING_LINE.sub("", text)).strip()

    result = ""
    for paragraph in re.split(r"\n\s*\n", body):
        if not paragraph.strip():
            continue
        result += paragraph.strip() + "\n\n"
        if len(result) > max_length:
            result = result[:max_length] + "..."
            break
    return result.strip()


def load_document(path: Path, store: ArtifactStore | None = None) -> RenderedDocument:
    """
    Read a document for display.

    A missing file yields a placeholder document; a read failure yields
    an error document carrying the failure text.
    """
    path = Path(path)
    store = store or ArtifactStore(path.parent)
    try:
        content = store.read_content(path)
    except ArtifactStoreError as e:
        logger.error(
            "Failed to load document",
            extra={"event": "document_load_failed", "path": str(path), "error": str(e)},
        )
        return RenderedDocument(
            path=path,
            content=f"# {LOAD_ERROR_TITLE}\n\n{e.message}",
            metadata=DocumentMetadata(title=LOAD_ERROR_TITLE),
            found=False,
        )

    if content is None:
        return RenderedDocument(
            path=path,
            content=NOT_FOUND_CONTENT,
            metadata=DocumentMetadata(title=NOT_FOUND_TITLE),
            found=False,
        )

    return RenderedDocument(path=path, content=content, metadata=extract_metadata(content))


def document_title(document: RenderedDocument, headers: list[Header]) -> str:
    """First heading without its phase prefix, else the filename's display name."""
    if headers:
        return TITLE_PREFIXES.sub("", headers[0].text)
    return filenames.display_name(filenames.parse(document.path.name).identifier)


def render_document(
    path: Path,
    store: ArtifactStore | None = None,
    renderer: MarkdownRenderer | None = None,
) -> DocumentView:
    """Load, render and index one document."""
    renderer = renderer or MarkdownRenderer()
    document = load_document(path, store)
    headers = extract_headers(document.content)

    return DocumentView(
        path=document.path,
        title=document_title(document, headers),
        body_html=renderer.render(document.content),
        toc_html=build_toc(headers),
        metadata=document.metadata,
    )
