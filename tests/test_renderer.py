from markdown_pdf.renderer import Heading, MarkdownRenderer, extract_toc, highlight_css, toc_list
from markdown_pdf.slugs import SlugRegistry


def test_duplicate_headers_get_numbered_anchors() -> None:
    rendered = MarkdownRenderer().render("# Intro\n\n# Intro\n\n# Intro\n")
    assert 'id="intro"' in rendered.html
    assert 'id="intro-1"' in rendered.html
    assert 'id="intro-2"' in rendered.html
    assert rendered.toc is None


def test_header_has_permalink_before_text() -> None:
    rendered = MarkdownRenderer().render("## Hello, World! (v2)\n")
    assert rendered.html == (
        '<h2 id="hello-world-v2"><a class="anchor" aria-hidden="true" href="#hello-world-v2">'
        '<span class="octicon octicon-link"></span></a>Hello, World! (v2)</h2>\n'
    )


def test_unknown_language_falls_back_to_escaped_code() -> None:
    source = "before\n\n```nosuchlang\n<b>bold</b>\n```\n\nafter\n"
    rendered = MarkdownRenderer().render(source)
    assert '<pre><code class="language-nosuchlang">&lt;b&gt;bold&lt;/b&gt;\n</code></pre>' in rendered.html
    assert "<b>bold</b>" not in rendered.html
    assert rendered.html.startswith("<p>before</p>")
    assert rendered.html.endswith("<p>after</p>\n")


def test_known_language_is_highlighted() -> None:
    rendered = MarkdownRenderer().render("```python\ndef main():\n    pass\n```\n")
    assert '<pre class="highlight"><code class="language-python">' in rendered.html
    assert '<span class="k">def</span>' in rendered.html


def test_raw_html_and_xhtml_output() -> None:
    rendered = MarkdownRenderer().render('<div class="note">kept</div>\n\n![alt text](img/a.png)\n')
    assert '<div class="note">kept</div>' in rendered.html
    assert '<img src="img/a.png" alt="alt text" />' in rendered.html


def test_soft_breaks_are_not_line_breaks() -> None:
    rendered = MarkdownRenderer().render("first\nsecond\n")
    assert rendered.html == "<p>first\nsecond</p>\n"


def test_emoji_shortcodes() -> None:
    rendered = MarkdownRenderer().render("Done :smile: :not_a_real_emoji: `:smile:`\n")
    assert "\U0001F604" in rendered.html
    assert ":not_a_real_emoji:" in rendered.html
    assert "<code>:smile:</code>" in rendered.html


def test_table_of_contents_is_extracted() -> None:
    rendered = MarkdownRenderer().render("# One\n\n## Two\n\n# Three\n", table_of_contents=True)
    assert rendered.toc == (
        '<ul><li><a href="#one">One</a><ul><li><a href="#two">Two</a></li></ul></li>'
        '<li><a href="#three">Three</a></li></ul>'
    )
    assert "table-of-contents" not in rendered.html
    assert "[toc]" not in rendered.html
    assert 'id="three"' in rendered.html


def test_table_of_contents_uses_deduplicated_anchors() -> None:
    rendered = MarkdownRenderer().render("# Setup\n\n# Setup\n", table_of_contents=True)
    assert rendered.toc is not None
    assert rendered.toc.index('href="#setup"') < rendered.toc.index('href="#setup-1"')


def test_registry_can_be_shared_between_renders() -> None:
    registry = SlugRegistry()
    renderer = MarkdownRenderer()
    first = renderer.render("# Intro\n", registry=registry)
    second = renderer.render("# Intro\n", registry=registry)
    assert 'id="intro"' in first.html
    assert 'id="intro-1"' in second.html
    fresh = renderer.render("# Intro\n", registry=SlugRegistry())
    assert 'id="intro"' in fresh.html


def test_toc_list_handles_skipped_levels() -> None:
    headings = [Heading(1, "A", "a"), Heading(3, "B", "b"), Heading(2, "C", "c")]
    assert toc_list(headings) == (
        '<ul><li><a href="#a">A</a><ul><li><a href="#b">B</a></li>'
        '<li><a href="#c">C</a></li></ul></li></ul>'
    )
    assert toc_list([]) == ""


def test_extract_toc_without_container() -> None:
    assert extract_toc("<p>plain</p>") == ("<p>plain</p>", None)


def test_highlight_css_targets_highlight_blocks() -> None:
    assert ".highlight" in highlight_css()


def test_inline_toc_marker_is_extracted_without_flag() -> None:
    rendered = MarkdownRenderer().render("[toc]\n\n# One\n")
    assert rendered.toc == '<ul><li><a href="#one">One</a></li></ul>'
    assert "table-of-contents" not in rendered.html
    assert 'id="one"' in rendered.html


def test_highlighted_fence_keeps_blank_lines() -> None:
    rendered = MarkdownRenderer().render("```python\n\nx = 1\n\n```\n")
    assert '<code class="language-python">\n' in rendered.html
    assert "\n\n</code></pre>" in rendered.html
