from __future__ import annotations

import datetime as dt
import html
from dataclasses import dataclass, field
from types import MappingProxyType
from pathlib import Path
from typing import Mapping, Optional

from .utils import strip_tags

SUMMARY_LENGTH = 200


@dataclass(eq=False)
class Post:
    """One published entry.

    Posts are shared by reference between the full listing and every
    category bucket, so equality is identity. ``body_html`` and ``excerpt``
    stay ``None`` until :meth:`attach_html` runs, which it does once.
    """

    slug: str
    title: str
    published_at: dt.datetime
    categories: frozenset[str]
    layout: str
    body_source: str
    source: Path
    meta: Mapping[str, object] = field(default_factory=dict)
    body_html: Optional[str] = None
    excerpt: Optional[str] = None

    @property
    def rendered(self) -> bool:
        return self.body_html is not None

    @property
    def url(self) -> str:
        return f"/{self.slug}/"

    @property
    def output_path(self) -> str:
        return f"{self.slug}/index.html"

    @property
    def summary(self) -> str:
        description = self.meta.get("description")
        if isinstance(description, str) and description.strip():
            return description.strip()
        text = html.unescape(strip_tags(self.excerpt or "")).strip().replace("\n", " ")
        return text[:SUMMARY_LENGTH] + ("..." if len(text) > SUMMARY_LENGTH else "")

    def attach_html(self, body_html: str, excerpt: str) -> None:
        if self.body_html is not None:
            raise RuntimeError(f"post '{self.slug}' has already been rendered")
        self.body_html = body_html
        self.excerpt = excerpt


@dataclass(frozen=True)
class Collection:
    all: tuple[Post, ...]
    by_category: Mapping[str, tuple[Post, ...]]
    # category name -> unique path segment under categories/
    category_slugs: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __len__(self) -> int:
        return len(self.all)

    def newest(self) -> Optional[Post]:
        return self.all[0] if self.all else None
