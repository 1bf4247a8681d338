from __future__ import annotations

from types import MappingProxyType
from typing import Iterable

from .content import slugify
from .models import Collection, Post


def sort_posts(posts: Iterable[Post]) -> list[Post]:
    """Newest first; posts published at the same instant fall back to slug order."""
    ordered = sorted(posts, key=lambda p: p.slug)
    ordered.sort(key=lambda p: p.published_at, reverse=True)
    return ordered


def assign_category_slugs(names: Iterable[str]) -> dict[str, str]:
    """Map each category name to a path segment no other category shares.

    Names that slugify alike (``c`` and ``c++``) get ``-2``, ``-3``... in
    sorted name order, so the mapping does not depend on post order.
    """
    slugs: dict[str, str] = {}
    used: set[str] = set()
    for name in sorted(names):
        base = slugify(name)
        slug = base
        n = 2
        while slug in used:
            slug = f"{base}-{n}"
            n += 1
        used.add(slug)
        slugs[name] = slug
    return slugs


def build_collection(posts: Iterable[Post]) -> Collection:
    ordered = sort_posts(posts)
    buckets: dict[str, list[Post]] = {}
    for post in ordered:
        for category in post.categories:
            buckets.setdefault(category, []).append(post)
    by_category = {name: tuple(buckets[name]) for name in sorted(buckets)}
    return Collection(
        all=tuple(ordered),
        by_category=MappingProxyType(by_category),
        category_slugs=MappingProxyType(assign_category_slugs(by_category)),
    )
