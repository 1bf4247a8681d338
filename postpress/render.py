from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .content import meta_text, parse_front_matter, read_source
from .errors import LayoutCycleError, UnknownLayoutError

log = logging.getLogger(__name__)

DATE_FMT = "%Y-%m-%d"
PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def render_template(template: str, **context: str) -> str:
    """Substitute ``{{key}}`` placeholders in one pass.

    Inserted values are never rescanned, so placeholder-looking text inside
    a post body stays as written. Unknown keys are left in place.
    """

    def repl(match: re.Match) -> str:
        value = context.get(match.group(1))
        return match.group(0) if value is None else value

    return PLACEHOLDER_RE.sub(repl, template)


@dataclass(frozen=True)
class Layout:
    name: str
    template: str
    parent: Optional[str] = None
    source: Optional[Path] = None

    def __call__(self, **context: str) -> str:
        return render_template(self.template, **context)


@dataclass(frozen=True)
class TemplateOptions:
    layout: str
    title: Optional[str] = None
    date_format: str = DATE_FMT


def read_layout(path: Path) -> Layout:
    meta, body = parse_front_matter(read_source(path), path)
    return Layout(name=path.stem, template=body, parent=meta_text(meta, "layout", path), source=path)


def load_layouts(*dirs: Optional[Path]) -> dict[str, Layout]:
    """Load every ``*.html`` layout from ``dirs``; later directories win.

    Parent chains are checked here so a bad layout fails the build before
    any page is rendered.
    """
    layouts: dict[str, Layout] = {}
    for directory in dirs:
        if directory is None or not directory.is_dir():
            continue
        for path in sorted(directory.glob("*.html")):
            layouts[path.stem] = read_layout(path)
            log.debug("Loaded layout %s from %s", path.stem, path)
    for layout in layouts.values():
        layout_chain(layouts, layout.name)
    return layouts


def layout_chain(layouts: Mapping[str, Layout], name: str) -> list[Layout]:
    chain = [resolve_layout(layouts, name)]
    seen = [name]
    while chain[-1].parent:
        parent = chain[-1].parent
        if parent in seen:
            raise LayoutCycleError(seen + [parent])
        chain.append(resolve_layout(layouts, parent, chain[-1].source))
        seen.append(parent)
    return chain


def resolve_layout(layouts: Mapping[str, Layout], name: str, source: Optional[Path] = None) -> Layout:
    layout = layouts.get(name)
    if layout is None:
        raise UnknownLayoutError(name, source)
    return layout


def render_layout(layouts: Mapping[str, Layout], name: str, context: Mapping[str, str]) -> str:
    context = dict(context)
    output = ""
    for layout in layout_chain(layouts, name):
        output = layout(**context)
        context["content"] = output
    return output


def render_page(layouts: Mapping[str, Layout], options: TemplateOptions, **context: str) -> str:
    if options.title is not None:
        context["title"] = html.escape(options.title)
    return render_layout(layouts, options.layout, context)
