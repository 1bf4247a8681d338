"""Shared fixtures: a throwaway site source tree under tmp_path."""

import datetime as dt
from pathlib import Path

import pytest

from postpress.config import BuildContext
from postpress.models import Post

UTC = dt.timezone.utc


class SiteDir:
    def __init__(self, root: Path):
        self.root = root
        self.posts = root / "_posts"
        self.layouts = root / "_layouts"
        self.output = root / "_site"
        self.posts.mkdir()

    def write_post(self, name: str, body: str = "Hi there.", **meta: str) -> Path:
        lines = ["---"]
        lines.extend(f"{key}: {value}" for key, value in meta.items())
        lines.append("---")
        path = self.posts / name
        path.write_text("\n".join(lines) + "\n" + body + "\n", encoding="utf-8")
        return path

    def write_layout(self, name: str, text: str) -> Path:
        self.layouts.mkdir(exist_ok=True)
        path = self.layouts / f"{name}.html"
        path.write_text(text, encoding="utf-8")
        return path

    def context(self, **overrides) -> BuildContext:
        values = dict(
            source=self.root,
            posts_dir=self.posts,
            layouts_dir=self.layouts,
            static_dir=self.root / "static",
            output_dir=self.output,
            build_workers=1,
        )
        values.update(overrides)
        return BuildContext(**values)

    def snapshot(self) -> dict:
        return {
            path.relative_to(self.output).as_posix(): path.read_bytes()
            for path in sorted(self.output.rglob("*"))
            if path.is_file()
        }


@pytest.fixture()
def site(tmp_path):
    return SiteDir(tmp_path)


def make_post(slug, when, categories=(), title=None):
    return Post(
        slug=slug,
        title=title or slug.replace("-", " ").title(),
        published_at=when,
        categories=frozenset(categories),
        layout="default",
        body_source="",
        source=Path(f"{slug}.md"),
    )
