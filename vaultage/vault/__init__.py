"""Note loading, structural parsing and link verification."""

from .links import ExternalLinkResult, InternalLinkResult, LinkCache, LinkVerifier
from .loader import load_document, render_document
from .parser import scan_body

__all__ = [
    "load_document",
    "render_document",
    "scan_body",
    "LinkCache",
    "LinkVerifier",
    "ExternalLinkResult",
    "InternalLinkResult",
]
