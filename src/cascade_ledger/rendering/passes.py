"""
Markdown render passes.

Each pass is a total ``transform(text) -> text`` over the intermediate
document. ``default_passes`` returns them in the order the renderer
applies them; later passes see the output of earlier ones.

Code is protected before any pass runs: ``protect_code`` swaps fenced
blocks and inline spans for opaque tokens that only ``CodePass``
expands, and escapes ``&`` and ``<`` in the remaining text.
"""

import base64
import html
import re
from abc import ABC, abstractmethod
from typing import Callable

from cascade_ledger.rendering.sanitizer import Sanitizer, sanitize_class_name

# Opaque code tokens: NUL kind : base64 lang : base64 payload NUL
TOKEN_PATTERN = re.compile(
    r"\x00(BLOCK|INLINE|LITERAL):([A-Za-z0-9+/=]*):([A-Za-z0-9+/=]*)\x00"
)
FENCE_OPEN = re.compile(r"^\s*```\s*([^\s`]*)\s*$")
FENCE_CLOSE = re.compile(r"^\s*```\s*$")
INLINE_CODE = re.compile(r"`([^`\n]+)`")

# Emphasis, strongest first
BOLD_ITALIC = re.compile(r"\*\*\*(?=\S)(.+?)(?<=\S)\*\*\*")
BOLD = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*")
ITALIC_STAR = re.compile(r"\*(?=\S)(.+?)(?<=\S)\*")
ITALIC_UNDERSCORE = re.compile(r"(?<!\w)_(?=\S)(.+?)(?<=\S)_(?!\w)")
LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")

HEADING = re.compile(r"<h([1-6])>(.*?)</h\1>")
CODE_REGION = re.compile(r"<pre\b[^>]*>.*?</pre>|<code\b[^>]*>.*?</code>", re.DOTALL)
TAG = re.compile(r"<[^>]+>")
MASK = re.compile(r"\x00(\d+)\x00")

BLOCK_TAGS = (
    "h1", "h2", "h3", "h4", "h5", "h6", "div", "p", "ul", "ol", "li",
    "pre", "blockquote", "hr", "table", "thead", "tbody", "tr",
)
BLOCK_START = re.compile(r"^<(?:/)?(?:%s)\b" % "|".join(BLOCK_TAGS))


def _b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _encode(kind: str, content: str, lang: str = "") -> str:
    # both fields base64 so no later pass can match inside the token
    return f"\x00{kind}:{_b64(lang)}:{_b64(content)}\x00"


def _decode(payload: str) -> str:
    return base64.b64decode(payload.encode("ascii")).decode("utf-8")


def _escape_text(text: str, escape: bool) -> str:
    if not escape:
        return text
    return text.replace("&", "&amp;").replace("<", "&lt;")


def _protect_line(line: str, escape: bool) -> str:
    parts = []
    last = 0
    for match in INLINE_CODE.finditer(line):
        parts.append(_escape_text(line[last:match.start()], escape))
        parts.append(_encode("INLINE", match.group(1)))
        last = match.end()
    parts.append(_escape_text(line[last:], escape))
    return "".join(parts)


def protect_code(text: str, escape: bool = True) -> str:
    """
    Tokenize code out of the source before structural passes.

    Fenced blocks become BLOCK tokens and inline spans INLINE tokens. An
    opening fence with no closing fence turns the rest of the input into
    a single LITERAL token. Outside code, ``&`` and ``<`` are escaped
    unless ``escape`` is False.
    """
    lines = text.replace("\x00", "").split("\n")
    out: list[str] = []
    i = 0
    while i < len(lines):
        opening = FENCE_OPEN.match(lines[i])
        if not opening:
            out.append(_protect_line(lines[i], escape))
            i += 1
            continue

        close = next(
            (j for j in range(i + 1, len(lines)) if FENCE_CLOSE.match(lines[j])),
            None,
        )
        if close is None:
            out.append(_encode("LITERAL", "\n".join(lines[i:])))
            break

        out.append(_encode("BLOCK", "\n".join(lines[i + 1:close]), opening.group(1)))
        i = close + 1
    return "\n".join(out)


def strip_inline_markdown(text: str) -> str:
    """Plain text of a heading line: emphasis, links and code markers removed."""
    text = LINK.sub(r"\1", text)
    text = INLINE_CODE.sub(r"\1", text)
    for pattern in (BOLD_ITALIC, BOLD, ITALIC_STAR, ITALIC_UNDERSCORE):
        text = pattern.sub(r"\1", text)
    return text


def slugify(text: str) -> str:
    """Lower-case and collapse non-word runs to one hyphen."""
    return re.sub(r"[^\w]+", "-", text.lower())


def heading_slug(inner_markup: str) -> str:
    """Slug of rendered heading content (tags removed, entities decoded)."""
    return slugify(html.unescape(TAG.sub("", inner_markup)))


def map_lines_outside_pre(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to every line not inside a ``<pre>`` block."""
    out = []
    in_pre = False
    for line in text.split("\n"):
        if in_pre:
            out.append(line)
            in_pre = "</pre>" not in line
        elif "<pre" in line:
            out.append(line)
            in_pre = "</pre>" not in line
        else:
            out.append(fn(line))
    return "\n".join(out)


def map_outside_code(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to the parts of ``text`` outside pre/code elements."""
    out = []
    last = 0
    for match in CODE_REGION.finditer(text):
        out.append(fn(text[last:match.start()]))
        out.append(match.group(0))
        last = match.end()
    out.append(fn(text[last:]))
    return "".join(out)


def map_around_code(text: str, fn: Callable[[str], str]) -> str:
    """
    Apply ``fn`` to ``text`` with pre/code elements masked out.

    Unlike ``map_outside_code`` the text is not split, so a construct
    that encloses a code span (link text, heading) is still seen whole;
    the code itself is never passed to ``fn``.
    """
    regions: list[str] = []

    def _mask(match: re.Match) -> str:
        regions.append(match.group(0))
        return f"\x00{len(regions) - 1}\x00"

    masked = fn(CODE_REGION.sub(_mask, text))
    return MASK.sub(lambda m: regions[int(m.group(1))], masked)


class RenderPass(ABC):
    """One structural transform of the intermediate document."""

    name: str = "pass"

    @abstractmethod
    def transform(self, text: str) -> str:
        """Return the transformed document."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class HeaderPass(RenderPass):
    """``#`` through ``######`` lines to h1-h6, deepest first."""

    name = "headers"

    def transform(self, text: str) -> str:
        for level in range(6, 0, -1):
            pattern = re.compile(r"^#{%d}[ \t]+(.+?)[ \t]*$" % level, re.MULTILINE)
            text = pattern.sub(lambda m, n=level: f"<h{n}>{m.group(1)}</h{n}>", text)
        return text


class EmphasisPass(RenderPass):
    """Triple, double, then single asterisk; single underscore."""

    name = "emphasis"

    def transform(self, text: str) -> str:
        text = BOLD_ITALIC.sub(r"<strong><em>\1</em></strong>", text)
        text = BOLD.sub(r"<strong>\1</strong>", text)
        text = ITALIC_STAR.sub(r"<em>\1</em>", text)
        return ITALIC_UNDERSCORE.sub(r"<em>\1</em>", text)


class CodePass(RenderPass):
    """Expand code tokens into escaped pre/code elements."""

    name = "code"

    def __init__(self, sanitizer: Sanitizer):
        self._sanitizer = sanitizer

    def _expand(self, match: re.Match) -> str:
        kind, payload = match.group(1), match.group(3)
        lang = sanitize_class_name(_decode(match.group(2)))
        content = self._sanitizer.escape_code(_decode(payload))
        if kind == "BLOCK":
            return f'<pre><code class="language-{lang or "plaintext"}">{content}</code></pre>'
        if kind == "INLINE":
            return f"<code>{content}</code>"
        # unterminated fence: rest of the document verbatim
        return f'<pre class="literal">{content}</pre>'

    def transform(self, text: str) -> str:
        return TOKEN_PATTERN.sub(self._expand, text)


class LinkPass(RenderPass):
    """``[text](url)`` to anchors with sanitized href."""

    name = "links"

    def __init__(self, sanitizer: Sanitizer):
        self._sanitizer = sanitizer

    def _anchor(self, match: re.Match) -> str:
        href = self._sanitizer.sanitize_url(html.unescape(match.group(2)))
        href = html.escape(href.replace('"', "").replace("<", "").replace(">", ""), quote=False)
        return f'<a href="{href}">{match.group(1)}</a>'

    def transform(self, text: str) -> str:
        return map_lines_outside_pre(
            text, lambda line: map_around_code(line, lambda s: LINK.sub(self._anchor, s))
        )


class ListPass(RenderPass):
    """
    ``* ``, ``- `` and ``N. `` lines to list items.

    Each contiguous run of items is wrapped in one list element; a run
    that starts with a numbered item becomes an ordered list.
    """

    name = "lists"

    BULLET = re.compile(r"^[*-] (.+)$")
    NUMBERED = re.compile(r"^\d+\. (.+)$")

    def _item(self, line: str) -> tuple[str, str] | None:
        match = self.BULLET.match(line)
        if match:
            return "ul", match.group(1)
        match = self.NUMBERED.match(line)
        if match:
            return "ol", match.group(1)
        return None

    def transform(self, text: str) -> str:
        out: list[str] = []
        run_tag: str | None = None
        in_pre = False

        for line in text.split("\n"):
            if in_pre:
                item = None
                in_pre = "</pre>" not in line
            elif "<pre" in line:
                item = None
                in_pre = "</pre>" not in line
            else:
                item = self._item(line)

            if item is None:
                if run_tag:
                    out.append(f"</{run_tag}>")
                    run_tag = None
                out.append(line)
                continue

            tag, content = item
            if run_tag is None:
                run_tag = tag
                out.append(f"<{tag}>")
            out.append(f"<li>{content}</li>")

        if run_tag:
            out.append(f"</{run_tag}>")
        return "\n".join(out)


class BlockquotePass(RenderPass):
    """``> `` lines to blockquotes."""

    name = "blockquotes"

    PATTERN = re.compile(r"^> (.+)$")

    def transform(self, text: str) -> str:
        return map_lines_outside_pre(
            text, lambda line: self.PATTERN.sub(r"<blockquote>\1</blockquote>", line)
        )


class RulePass(RenderPass):
    """Three or more hyphens on a line to a horizontal rule."""

    name = "rules"

    PATTERN = re.compile(r"^-{3,}\s*$")

    def transform(self, text: str) -> str:
        return map_lines_outside_pre(text, lambda line: self.PATTERN.sub("<hr>", line))


class CheckboxPass(RenderPass):
    """``[ ]`` and ``[x]`` markers to checkbox inputs."""

    name = "checkboxes"

    def _convert(self, segment: str) -> str:
        segment = segment.replace("[ ]", '<input type="checkbox" disabled>')
        return re.sub(r"\[[xX]\]", '<input type="checkbox" checked disabled>', segment)

    def transform(self, text: str) -> str:
        return map_outside_code(text, self._convert)


class ParagraphPass(RenderPass):
    """
    Join runs of plain lines into paragraphs.

    Blank lines and lines starting with a block element flush the
    current paragraph; lines inside pre blocks are left alone.
    """

    name = "paragraphs"

    def transform(self, text: str) -> str:
        out: list[str] = []
        paragraph: list[str] = []
        in_pre = False

        def flush() -> None:
            if paragraph:
                out.append(f"<p>{' '.join(paragraph)}</p>")
                paragraph.clear()

        for line in text.split("\n"):
            stripped = line.strip()
            if in_pre:
                out.append(line)
                in_pre = "</pre>" not in line
                continue
            if stripped.startswith("<pre"):
                flush()
                out.append(line)
                in_pre = "</pre>" not in line
                continue
            if not stripped:
                flush()
                continue
            if BLOCK_START.match(stripped):
                flush()
                out.append(line)
                continue
            paragraph.append(stripped)

        flush()
        return "\n".join(out)


class HeadingWrapPass(RenderPass):
    """Wrap each heading in a div carrying its slug id and level."""

    name = "heading_wrap"

    def _wrap(self, match: re.Match) -> str:
        level, inner = match.group(1), match.group(2)
        slug = heading_slug(inner)
        return (
            f'<div class="heading-wrapper" id="{slug}" data-level="{level}">'
            f"{match.group(0)}</div>"
        )

    def transform(self, text: str) -> str:
        # headings are single lines; their content may hold inline code
        return map_lines_outside_pre(text, lambda line: HEADING.sub(self._wrap, line))


def default_passes(sanitizer: Sanitizer) -> list[RenderPass]:
    """Render passes in application order."""
    return [
        HeaderPass(),
        EmphasisPass(),
        CodePass(sanitizer),
        LinkPass(sanitizer),
        ListPass(),
        BlockquotePass(),
        RulePass(),
        CheckboxPass(),
        ParagraphPass(),
        HeadingWrapPass(),
    ]
