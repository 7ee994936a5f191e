from hn_distill.text import clamp, html_to_md, html_to_plain, squash


def test_html_to_plain_paragraphs_and_entities():
    html = "First &amp; foremost<p>Second <i>para</i> with <a href=\"https://x.test\">link</a>"
    assert html_to_plain(html) == "First & foremost\n\nSecond para with link"


def test_html_to_plain_breaks_and_lists():
    assert html_to_plain("a<br>b<br/>c") == "a\nb\nc"
    assert "• one" in html_to_plain("<ul><li>one</li><li>two</li></ul>")


def test_html_to_plain_empty():
    assert html_to_plain("") == ""
    assert html_to_plain("<p>  </p>") == ""


def test_html_to_plain_has_no_tags_after_clamp():
    out = clamp(html_to_plain("<p>" + "<b>bold</b> " * 1000 + "</p>"), 300)
    assert len(out) == 300
    assert "<" not in out


def test_html_to_md_headings():
    md = html_to_md("<h1>Hello</h1><p>World</p>")
    assert md.startswith("# Hello")
    assert "World" in md
    assert html_to_md("") == ""


def test_clamp_and_squash():
    assert clamp("abcdef", 3) == "abc"
    assert clamp("ab", 3) == "ab"
    assert squash("  a \n\t b  ") == "a b"


def test_html_to_plain_keeps_long_bodies_whole():
    assert len(html_to_plain("<p>" + "y" * 40_000 + "</p>")) == 40_000
