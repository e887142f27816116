"""
Cascade Ledger Rendering Module.

Markdown to sanitized markup for phase documents, plus table of
contents, metadata and preview extraction.
"""

from .sanitizer import Sanitizer, SanitizerConfig, sanitize_markup, sanitize_url
from .passes import RenderPass, default_passes
from .markdown import (
    DocumentMetadata,
    DocumentView,
    Header,
    MarkdownRenderer,
    RenderedDocument,
    build_toc,
    extract_headers,
    extract_metadata,
    load_document,
    preview,
    render,
    render_document,
)

__all__ = [
    # Sanitizer
    "Sanitizer",
    "SanitizerConfig",
    "sanitize_markup",
    "sanitize_url",
    # Passes
    "RenderPass",
    "default_passes",
    # Renderer
    "MarkdownRenderer",
    "render",
    "render_document",
    "load_document",
    # Document structure
    "Header",
    "DocumentMetadata",
    "RenderedDocument",
    "DocumentView",
    "extract_headers",
    "build_toc",
    "extract_metadata",
    "preview",
]
