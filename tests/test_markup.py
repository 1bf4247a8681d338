"""Markdown rendering, excerpts and code excerpt links."""

import datetime as dt

import pytest

from conftest import make_post
from postpress.markup import first_paragraph, render_markdown, render_post, split_excerpt

UTC = dt.timezone.utc


def test_headings_and_emphasis():
    html = render_markdown("# Title\n\n*em* and **strong**")
    assert "Title</h1>" in html
    assert "<em>em</em>" in html
    assert "<strong>strong</strong>" in html


def test_nested_lists():
    html = render_markdown("- a\n    - b\n- c\n\n1. one\n2. two")
    assert html.count("<ul>") == 2
    assert "<ol>" in html


def test_table():
    html = render_markdown("| a | b |\n|---|---|\n| 1 | 2 |")
    assert "<table>" in html
    assert "<td>1</td>" in html


def test_links_images_blockquote_inline_code():
    html = render_markdown("[docs](https://example.com)\n\n![alt](img.png)\n\n> quoted\n\nUse `x < y`.")
    assert '<a href="https://example.com">docs</a>' in html
    assert 'src="img.png"' in html
    assert 'alt="alt"' in html
    assert "<blockquote>" in html
    assert "<code>x &lt; y</code>" in html


def test_raw_html_passes_through():
    html = render_markdown('Before\n\n<div class="note">Hi <b>there</b></div>\n\nAfter')
    assert '<div class="note">Hi <b>there</b></div>' in html


@pytest.mark.parametrize(
    "lang, code, expected",
    [
        ("sql", "SELECT * FROM t WHERE a < 5;", "SELECT * FROM t WHERE a &lt; 5;"),
        ("shell", 'rm -rf "$HOME/tmp" && echo done', "rm -rf &quot;$HOME/tmp&quot; &amp;&amp; echo done"),
        ("python", "import os\nos.system('reboot')", "import os\nos.system('reboot')"),
    ],
)
def test_fenced_code_is_verbatim(lang, code, expected):
    html = render_markdown(f"```{lang}\n{code}\n```")
    assert f'<code class="language-{lang}">' in html
    assert expected in html


def test_fenced_code_is_never_executed(tmp_path):
    marker = tmp_path / "executed.txt"
    code = f"open({str(marker)!r}, 'w').write('ran')"
    html = render_markdown(f"```python\n{code}\n```")
    assert not marker.exists()
    assert "open(" in html


def test_ugly_markdown_still_renders():
    html = render_markdown("***\n[broken](\n<div>\n```\n# \n|||")
    assert isinstance(html, str)
    assert html


def test_first_paragraph():
    assert first_paragraph("<h1>T</h1>\n<p>One</p>\n<p>Two</p>") == "<p>One</p>"
    assert first_paragraph("<h1>T</h1>") == ""


def test_render_post_uses_excerpt_separator():
    post = make_post("a", dt.datetime(2026, 1, 1, tzinfo=UTC))
    post.body_source = "Intro para.\n\n<!--more-->\n\nRest of the post."
    render_post(post)
    assert post.excerpt == "<p>Intro para.</p>"
    assert "Rest of the post." in post.body_html


def test_render_post_excerpt_defaults_to_first_paragraph():
    post = make_post("a", dt.datetime(2026, 1, 1, tzinfo=UTC))
    post.body_source = "# Heading\n\nFirst.\n\nSecond."
    render_post(post)
    assert post.excerpt == "<p>First.</p>"
    assert post.summary == "First."


def test_render_post_only_once():
    post = make_post("a", dt.datetime(2026, 1, 1, tzinfo=UTC))
    post.body_source = "Text"
    render_post(post)
    with pytest.raises(RuntimeError):
        render_post(post)
    assert post.body_html == "<p>Text</p>"


def test_code_link_embeds_highlighted_file(tmp_path):
    (tmp_path / "snippet.py").write_text("def f():\n    return 1\n", encoding="utf-8")
    html = render_markdown("See [the helper](code:snippet.py#L2).", base_path=tmp_path)
    assert 'class="code-link"' in html
    assert 'data-line="2"' in html
    assert 'data-lang="python"' in html
    assert ">the helper</a>" in html


def test_code_link_missing_file(tmp_path):
    html = render_markdown("See [x](code:missing.py#L1).", base_path=tmp_path)
    assert "code-link-error" in html
    assert "File not found: missing.py" in html


@pytest.mark.parametrize("name", ["a" * 300 + ".py", "bad\x00name.py"])
def test_code_link_unusable_path_renders_error_link(tmp_path, name):
    html = render_markdown(f"See [x](code:{name}#L1).", base_path=tmp_path)
    assert "code-link-error" in html
    assert "File not found" in html


def test_excerpt_separator_inside_fence_is_ignored():
    post = make_post("a", dt.datetime(2026, 1, 1, tzinfo=UTC))
    post.body_source = "Intro para.\n\n```html\n<!--more-->\n```"
    render_post(post)
    assert post.excerpt == "<p>Intro para.</p>"
    assert "&lt;!--more--&gt;" in post.body_html


def test_split_excerpt():
    assert split_excerpt("A <!--more--> B", "<!--more-->") == "A "
    assert split_excerpt("~~~\n<!--more-->\n~~~\nB\n<!--more-->\nC", "<!--more-->") == "~~~\n<!--more-->\n~~~\nB\n"
    assert split_excerpt("no marker", "<!--more-->") is None
