"""End-to-end builds through the command line."""

import pytest

from postpress.cli import build_site, main
from postpress.errors import DuplicateSlugError, UnknownLayoutError, ValidationError


def run_build(site, *extra):
    return main(["build", "--source", str(site.root), *extra])


def write_hello(site):
    return site.write_post(
        "2026-01-01-hello-world.markdown",
        "Hi there.",
        layout="default",
        title='"Hello World"',
        date="2026-01-01 10:00:00 +0000",
    )


def test_minimal_post(site, capsys):
    write_hello(site)
    assert run_build(site) == 0

    page = (site.output / "hello-world" / "index.html").read_text(encoding="utf-8")
    assert "<p>Hi there.</p>" in page
    assert "<title>Hello World | postpress</title>" in page

    home = (site.output / "index.html").read_text(encoding="utf-8")
    assert "./hello-world/index.html" in home
    assert "Build completed" in capsys.readouterr().out


def test_missing_date_fails(site, capsys):
    site.write_post("undated-post.md", "Body", title="No date")
    assert run_build(site) == 1
    err = capsys.readouterr().err
    assert "undated-post.md" in err
    assert "missing required field: date" in err
    assert not site.output.exists()


def test_missing_date_raises_validation_error(site):
    site.write_post("undated-post.md", "Body", title="No date")
    with pytest.raises(ValidationError) as exc_info:
        build_site(site.context())
    assert exc_info.value.missing_field == "date"


def test_duplicate_slug_fails(site):
    write_hello(site)
    site.write_post("2026-02-01-Hello_World.md", "Again", title="Hello again")
    with pytest.raises(DuplicateSlugError) as exc_info:
        build_site(site.context())
    names = sorted(path.name for path in exc_info.value.sources)
    assert names == ["2026-01-01-hello-world.markdown", "2026-02-01-Hello_World.md"]


def test_category_grouping(site):
    site.write_post("2026-01-02-auth.md", "Tokens.", title="Auth", categories="engineering security")
    site.write_post("2026-01-01-ddd.md", "Aggregates.", title="DDD", categories="engineering")
    assert run_build(site) == 0

    page = (site.output / "categories" / "engineering" / "index.html").read_text(encoding="utf-8")
    assert page.index("../../auth/index.html") < page.index("../../ddd/index.html")
    security = (site.output / "categories" / "security" / "index.html").read_text(encoding="utf-8")
    assert "../../auth/index.html" in security
    assert "../../ddd/index.html" not in security


def test_fenced_code_reaches_the_page(site):
    site.write_post(
        "2026-01-01-sql.md",
        "```sql\nSELECT * FROM users WHERE id < 10;\n```",
        title="SQL",
    )
    assert run_build(site) == 0
    page = (site.output / "sql" / "index.html").read_text(encoding="utf-8")
    assert '<code class="language-sql">SELECT * FROM users WHERE id &lt; 10;' in page


def test_builds_are_byte_identical(site):
    write_hello(site)
    site.write_post("2026-01-02-second.md", "Second <!--more--> rest", title="Second", categories="misc")
    site.write_post("2026-01-02-another.md", "Another", title="Another", categories="misc")
    args = ("--site-url", "https://example.com", "--posts-per-page", "1", "--build-workers", "4")
    assert run_build(site, *args) == 0
    first = site.snapshot()
    assert run_build(site, *args) == 0
    assert site.snapshot() == first
    assert {"rss.xml", "atom.xml", "sitemap.xml", "page/2/index.html", "page/3/index.html"} <= set(first)


def test_home_page_lists_newest_first(site):
    write_hello(site)
    site.write_post("2026-03-01-newer.md", "Newer", title="Newer")
    assert run_build(site) == 0
    home = (site.output / "index.html").read_text(encoding="utf-8")
    assert home.index("./newer/index.html") < home.index("./hello-world/index.html")


def test_post_layout_wraps_default(site):
    site.write_post("2026-01-01-styled.md", "Body", title="Styled", layout="post", categories="notes")
    assert run_build(site) == 0
    page = (site.output / "styled" / "index.html").read_text(encoding="utf-8")
    assert '<h1 class="post-title">Styled</h1>' in page
    assert '<time class="post-date" datetime="2026-01-01T00:00:00+00:00">2026-01-01</time>' in page
    assert "<!doctype html>" in page


def test_unknown_layout_fails_before_output(site, capsys):
    site.output.mkdir()
    (site.output / "keep.txt").write_text("old", encoding="utf-8")
    site.write_post("2026-01-01-a.md", "Body", title="A", layout="fancy")
    assert run_build(site) == 1
    assert "unknown layout 'fancy'" in capsys.readouterr().err
    assert [p.name for p in site.output.iterdir()] == ["keep.txt"]


def test_unknown_layout_error_type(site):
    site.write_post("2026-01-01-a.md", "Body", title="A", layout="fancy")
    with pytest.raises(UnknownLayoutError):
        build_site(site.context())


def test_failed_rebuild_keeps_previous_site(site):
    write_hello(site)
    assert run_build(site) == 0
    before = site.snapshot()
    (site.posts / "2026-01-05-broken.md").write_text("---\ntitle: Broken\n", encoding="utf-8")
    assert run_build(site) == 1
    assert site.snapshot() == before


def test_invalid_utf8_fails(site, capsys):
    (site.posts / "2026-01-01-latin1.md").write_bytes("---\ntitle: café\n---\n".encode("latin-1"))
    assert run_build(site) == 1
    assert "not valid UTF-8" in capsys.readouterr().err


def test_drafts_are_skipped(site):
    write_hello(site)
    site.write_post("2026-01-03-wip.md", "WIP", title="WIP", draft="true")
    assert run_build(site) == 0
    assert not (site.output / "wip").exists()
    assert run_build(site, "--drafts") == 0
    assert (site.output / "wip" / "index.html").exists()


def test_site_layout_override(site):
    write_hello(site)
    site.write_layout("default", "<body data-custom>{{content}}</body>")
    assert run_build(site) == 0
    page = (site.output / "hello-world" / "index.html").read_text(encoding="utf-8")
    assert page == "<body data-custom><p>Hi there.</p></body>"


def test_config_file_values(site):
    write_hello(site)
    (site.root / "site.toml").write_text(
        'site_name = "Engineering Notes"\noutput = "public"\ncustom_domain = "blog.example.com"\n',
        encoding="utf-8",
    )
    assert run_build(site) == 0
    page = (site.root / "public" / "hello-world" / "index.html").read_text(encoding="utf-8")
    assert "<title>Hello World | Engineering Notes</title>" in page
    assert (site.root / "public" / "CNAME").read_text(encoding="utf-8") == "blog.example.com\n"
    assert "https://blog.example.com/hello-world/" in (site.root / "public" / "rss.xml").read_text(encoding="utf-8")


def test_cli_flags_override_config(site):
    write_hello(site)
    (site.root / "site.toml").write_text('site_name = "From Config"\n', encoding="utf-8")
    assert run_build(site, "--site-name", "From Flag") == 0
    page = (site.output / "index.html").read_text(encoding="utf-8")
    assert "From Flag" in page
    assert "From Config" not in page


def test_missing_posts_dir(tmp_path, capsys):
    assert main(["build", "--source", str(tmp_path)]) == 1
    assert "posts directory not found" in capsys.readouterr().err


def test_colliding_category_names_both_get_pages(site):
    site.write_post("2026-01-01-cpp.md", "Templates.", title="Cpp", categories="c++")
    site.write_post("2026-01-02-c.md", "Pointers.", title="C", categories="c")
    assert run_build(site, "--site-url", "https://example.com") == 0

    c_page = (site.output / "categories" / "c" / "index.html").read_text(encoding="utf-8")
    cpp_page = (site.output / "categories" / "c-2" / "index.html").read_text(encoding="utf-8")
    assert "../../c/index.html" in c_page and "../../cpp/index.html" not in c_page
    assert "../../cpp/index.html" in cpp_page
    post = (site.output / "cpp" / "index.html").read_text(encoding="utf-8")
    assert 'href="../categories/c-2/index.html"' in post
    sitemap = (site.output / "sitemap.xml").read_text(encoding="utf-8")
    assert "https://example.com/categories/c-2/" in sitemap


@pytest.mark.parametrize("output", ["_posts", "_layouts", "static"])
def test_output_over_a_source_dir_is_refused(site, capsys, output):
    post = write_hello(site)
    site.write_layout("default", "{{content}}")
    (site.root / "static").mkdir()
    assert run_build(site, "--output", output) == 1
    assert "overlaps source directory" in capsys.readouterr().err
    assert post.exists()
    assert (site.layouts / "default.html").exists()


def test_placeholders_in_fenced_code_stay_verbatim(site):
    site.write_post(
        "2026-01-01-snippet.md",
        "```html\n<aside>{{sidebar}}</aside>\n<title>{{title}}</title>\n```",
        title="Snippet",
        categories="templates",
    )
    assert run_build(site) == 0
    page = (site.output / "snippet" / "index.html").read_text(encoding="utf-8")
    assert "&lt;aside&gt;{{sidebar}}&lt;/aside&gt;" in page
    assert "&lt;title&gt;{{title}}&lt;/title&gt;" in page


def test_non_utf8_config_fails_cleanly(site, capsys):
    write_hello(site)
    (site.root / "site.toml").write_bytes('site_name = "caf\xe9"\n'.encode("latin-1"))
    assert run_build(site) == 1
    assert "not valid UTF-8" in capsys.readouterr().err


def test_unwritable_output_fails_cleanly(site, capsys):
    write_hello(site)
    (site.root / "blocker").write_text("a file, not a directory", encoding="utf-8")
    assert run_build(site, "--output", "blocker/_site") == 1
    assert capsys.readouterr().err.startswith("error: ")
