"""
Markup sanitization.

Entity-encodes untrusted text, rewrites dangerous URLs, and filters
generated markup against a tag and attribute allow-list.

The escape bypass is an explicit, per-instance setting (default off).
Hosts that trust their own generated markup can enable it; every change
is logged.
"""

import html
import logging
import re
from html.parser import HTMLParser

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ALLOWED_TAGS = frozenset({
    "p", "div", "span", "a", "b", "i", "u", "strong", "em",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "br", "hr",
    "pre", "code", "blockquote",
    "table", "thead", "tbody", "tr", "th", "td",
    "img", "input",
    "svg", "path", "circle", "rect", "line", "polyline", "polygon",
})

VOID_TAGS = frozenset({"br", "hr", "img", "input"})

ALLOWED_ATTRIBUTES: dict[str, list[str]] = {
    "a": ["href", "title", "target", "rel"],
    "img": ["src", "alt", "width", "height"],
    "input": ["type", "checked", "disabled"],
    "svg": ["width", "height", "viewBox", "fill", "stroke", "xmlns"],
    "path": ["d", "fill", "stroke", "stroke-width"],
    "circle": ["cx", "cy", "r", "fill", "stroke", "stroke-width"],
    "rect": ["x", "y", "width", "height", "rx", "ry", "fill", "stroke"],
    "*": ["class", "id", "style", "data-*"],
}

URL_ATTRIBUTES = frozenset({"href", "src"})

DANGEROUS_PROTOCOLS = ("javascript:", "data:", "vbscript:")
SAFE_URL_PREFIXES = ("http://", "https://", "/", "#", "mailto:")

ENTITY_MAP = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
    "/": "&#x2F;",
    "`": "&#x60;",
    "=": "&#x3D;",
}
_ENTITY_PATTERN = re.compile(r"[&<>\"'`=/]")
_CLASS_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9\-_\s]")
_ATTRIBUTE_VALUE_UNSAFE = re.compile(r"[\"'<>]")


class SanitizerConfig(BaseModel):
    """Sanitizer settings."""

    allow_dangerous_bypass: bool = Field(
        default=False, description="Disable all markup escaping and filtering"
    )
    placeholder_url: str = Field(
        default="#", description="Replacement for rejected URLs"
    )
    default_scheme: str = Field(
        default="https://", description="Scheme prefixed to schemeless URLs"
    )


class Sanitizer:
    """
    Escapes text and filters markup.

    One instance per call chain; the bypass flag is never shared through
    module state.
    """

    def __init__(self, config: SanitizerConfig | None = None):
        self._config = config or SanitizerConfig()

    @property
    def config(self) -> SanitizerConfig:
        return self._config

    @property
    def bypass_enabled(self) -> bool:
        return self._config.allow_dangerous_bypass

    def set_bypass(self, value: bool) -> None:
        """Enable or disable the escape bypass."""
        self._config = self._config.model_copy(update={"allow_dangerous_bypass": value})
        logger.warning(
            f"Markup escape bypass is {'ENABLED' if value else 'disabled'}",
            extra={"event": "escape_bypass_toggled", "enabled": value},
        )

    def sanitize_markup(self, text: str) -> str:
        """Entity-encode ``& < > " ' / ` =`` unless the bypass is on."""
        if self.bypass_enabled:
            return text
        return _ENTITY_PATTERN.sub(lambda m: ENTITY_MAP[m.group(0)], str(text))

    def sanitize_url(self, url: str) -> str:
        """
        Neutralize dangerous URLs.

        javascript:, data: and vbscript: URLs become the placeholder.
        http(s), root-relative, fragment and mailto URLs pass verbatim.
        Schemeless strings get the default scheme; anything else is
        rejected.
        """
        if not url:
            return ""

        trimmed = url.strip().lower()
        for protocol in DANGEROUS_PROTOCOLS:
            if trimmed.startswith(protocol):
                logger.warning(
                    f"Dangerous URL protocol blocked: {protocol}",
                    extra={"event": "url_blocked", "protocol": protocol},
                )
                return self._config.placeholder_url

        if trimmed.startswith(SAFE_URL_PREFIXES):
            return url

        if ":" not in trimmed:
            return f"{self._config.default_scheme}{url.strip()}"

        return self._config.placeholder_url

    def escape_code(self, text: str) -> str:
        """Escape verbatim code; applies even when the bypass is on."""
        return html.escape(text, quote=True)

    def clean_markup(self, markup: str) -> str:
        """
        Filter markup against the tag and attribute allow-lists.

        Disallowed tags are dropped (their text is kept and escaped),
        disallowed attributes are removed, URL attributes go through
        ``sanitize_url`` and other values through
        ``sanitize_attribute_value``.
        """
        if self.bypass_enabled:
            return markup
        cleaner = _MarkupCleaner(self)
        cleaner.feed(markup)
        cleaner.close()
        return cleaner.result()

    def safe_attributes(self, tag: str, attributes: dict[str, str | None]) -> dict[str, str | None]:
        """Allowed attributes of ``tag`` with sanitized values."""
        safe: dict[str, str | None] = {}
        for name, value in attributes.items():
            if not is_allowed_attribute(tag, name):
                continue
            if value is None:
                safe[name] = None
            elif name in URL_ATTRIBUTES:
                safe[name] = sanitize_attribute_value(self.sanitize_url(value))
            elif name == "class":
                safe[name] = sanitize_class_name(value)
            else:
                safe[name] = sanitize_attribute_value(value)
        return safe

    def build_element(
        self,
        tag: str,
        content: str = "",
        class_name: str = "",
        attributes: dict[str, str] | None = None,
    ) -> str:
        """
        Render one element with escaped text content and safe attributes.

        Args:
            tag: Tag name
            content: Text content (escaped, never interpreted as markup)
            class_name: Class attribute value
            attributes: Additional attributes, filtered by the allow-list

        Returns:
            Markup string
        """
        attrs: dict[str, str | None] = dict(attributes or {})
        if class_name:
            attrs["class"] = class_name
        rendered = _format_attributes(self.safe_attributes(tag, attrs))
        if tag in VOID_TAGS:
            return f"<{tag}{rendered}>"
        return f"<{tag}{rendered}>{html.escape(content, quote=False)}</{tag}>"


def sanitize_class_name(class_name: str) -> str:
    """Strip characters outside ``[a-zA-Z0-9-_\\s]``."""
    return _CLASS_NAME_UNSAFE.sub("", class_name)


def sanitize_attribute_value(value: str) -> str:
    """Strip quote and angle-bracket characters."""
    return _ATTRIBUTE_VALUE_UNSAFE.sub("", value)


def is_allowed_attribute(tag: str, attribute: str) -> bool:
    """
    True if ``attribute`` is allowed on ``tag``.

    Allowed means listed for the tag, or matching the universal set
    (class, id, style, and any ``data-`` name).
    """
    tag_specific = ALLOWED_ATTRIBUTES.get(tag.lower())
    if tag_specific and attribute in tag_specific:
        return True

    for pattern in ALLOWED_ATTRIBUTES["*"]:
        if pattern.endswith("*"):
            if attribute.startswith(pattern[:-1]):
                return True
        elif pattern == attribute:
            return True
    return False


def _format_attributes(attributes: dict[str, str | None]) -> str:
    parts = []
    for name, value in attributes.items():
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html.escape(value, quote=False)}"')
    return "".join(parts)


class _MarkupCleaner(HTMLParser):
    """Re-emits allowed tags and escaped text."""

    def __init__(self, sanitizer: Sanitizer):
        super().__init__(convert_charrefs=False)
        self._sanitizer = sanitizer
        self._out: list[str] = []

    def handle_starttag(self, tag, attrs):
        if tag not in ALLOWED_TAGS:
            return
        safe = self._sanitizer.safe_attributes(tag, dict(attrs))
        self._out.append(f"<{tag}{_format_attributes(safe)}>")

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag):
        if tag in ALLOWED_TAGS and tag not in VOID_TAGS:
            self._out.append(f"</{tag}>")

    def handle_data(self, data):
        self._out.append(html.escape(data, quote=False))

    def handle_entityref(self, name):
        self._out.append(f"&{name};")

    def handle_charref(self, name):
        self._out.append(f"&#{name};")

    def handle_comment(self, data):
        pass

    def handle_decl(self, decl):
        pass

    def handle_pi(self, data):
        pass

    def unknown_decl(self, data):
        pass

    def result(self) -> str:
        return "".join(self._out)


_default = Sanitizer()


def sanitize_markup(text: str) -> str:
    """Entity-encode text with a default (bypass off) sanitizer."""
    return _default.sanitize_markup(text)


def sanitize_url(url: str) -> str:
    """Neutralize a URL with a default sanitizer."""
    return _default.sanitize_url(url)
