"""Publish a folder of dated Markdown posts as a static HTML site."""

from .collection import build_collection
from .content import build_post, parse_front_matter, serialize_front_matter
from .errors import (
    ConfigError,
    DuplicateSlugError,
    LayoutCycleError,
    MalformedEncodingError,
    MalformedFrontMatterError,
    OutputConflictError,
    SiteError,
    UnknownLayoutError,
    ValidationError,
)
from .markup import render_markdown
from .models import Collection, Post

__version__ = "0.1.0"

__all__ = [
    "Collection",
    "ConfigError",
    "DuplicateSlugError",
    "LayoutCycleError",
    "MalformedEncodingError",
    "MalformedFrontMatterError",
    "OutputConflictError",
    "Post",
    "SiteError",
    "UnknownLayoutError",
    "ValidationError",
    "build_collection",
    "build_post",
    "parse_front_matter",
    "render_markdown",
    "serialize_front_matter",
]
