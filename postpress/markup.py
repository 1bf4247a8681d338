from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import markdown

from .code_linker import CodeLinkerExtension
from .content import iter_fenced, normalize_list_spacing
from .models import Post

EXCERPT_SEPARATOR = "<!--more-->"
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "sane_lists"]
FIRST_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>.*?</p>", re.DOTALL | re.IGNORECASE)


def render_markdown(
    text: str,
    *,
    base_path: Optional[Path] = None,
    project_root: Optional[Path] = None,
    toc_depth: str = "2-4",
) -> str:
    """Convert Markdown to HTML.

    Fenced code is escaped and emitted verbatim inside
    ``<pre><code class="language-...">``. Raw HTML is passed through.
    """
    extensions: list = list(MARKDOWN_EXTENSIONS)
    if base_path is not None:
        extensions.append(CodeLinkerExtension(base_path, project_root or base_path))
    md = markdown.Markdown(
        extensions=extensions,
        extension_configs={"toc": {"toc_depth": toc_depth}},
    )
    return md.convert(normalize_list_spacing(text))


def first_paragraph(html_text: str) -> str:
    match = FIRST_PARAGRAPH_RE.search(html_text)
    return match.group(0) if match else ""


def split_excerpt(text: str, separator: str) -> Optional[str]:
    """Source before the first ``separator`` outside fenced code, or None."""
    head: list[str] = []
    for line, fenced in iter_fenced(text.splitlines()):
        if not fenced and separator in line:
            head.append(line.split(separator, 1)[0])
            return "\n".join(head)
        head.append(line)
    return None


def render_post(
    post: Post,
    *,
    project_root: Optional[Path] = None,
    excerpt_separator: str = EXCERPT_SEPARATOR,
    toc_depth: str = "2-4",
) -> Post:
    """Render ``post.body_source`` and attach body and excerpt to the post."""
    options = {
        "base_path": post.source.parent,
        "project_root": project_root,
        "toc_depth": toc_depth,
    }
    body_html = render_markdown(post.body_source, **options)
    head = split_excerpt(post.body_source, excerpt_separator) if excerpt_separator else None
    if head is not None:
        excerpt = render_markdown(head, **options)
    else:
        excerpt = first_paragraph(body_html)
    post.attach_html(body_html, excerpt)
    return post
