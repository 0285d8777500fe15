"""
Unit Tests for HTML sanitization
"""
import pytest

from infohub.services.html_sanitizer import (
    contains_dangerous_content,
    extract_text_content,
    get_text_length,
    sanitize_announcement_content,
    sanitize_for_preview,
    sanitize_html,
)


class TestSanitizeHtml:
    """Test allowlist cleaning"""

    def test_script_removed_with_content(self):
        assert sanitize_html("<p>Hi</p><script>alert('x')</script>") == "<p>Hi</p>"

    def test_unknown_tags_unwrapped(self):
        assert sanitize_html("<article><p>Kept</p></article>") == "<p>Kept</p>"

    def test_event_handlers_stripped(self):
        cleaned = sanitize_html('<img src="/a.png" onerror="alert(1)" alt="a">')
        assert "onerror" not in cleaned
        assert 'src="/a.png"' in cleaned

    @pytest.mark.parametrize("href", [
        "javascript:alert(1)",
        "JaVaScRiPt:alert(1)",
        "java\tscript:alert(1)",
        "data:text/html;base64,PHNjcmlwdD4=",
    ])
    def test_unsafe_links_dropped(self, href):
        cleaned = sanitize_html(f'<a href="{href}">x</a>')
        assert "href" not in cleaned

    @pytest.mark.parametrize("href", ["https://school.example", "/events/3", "#top", "mailto:office@school.example"])
    def test_safe_links_kept(self, href):
        assert f'href="{href}"' in sanitize_html(f'<a href="{href}">x</a>')

    def test_blank_target_gets_rel(self):
        cleaned = sanitize_html('<a href="https://x.example" target="_blank">x</a>')
        assert 'rel="noopener noreferrer"' in cleaned

    def test_style_filtered_to_safe_properties(self):
        cleaned = sanitize_html('<span style="color: red; position: fixed; background-color: url(x)">t</span>')
        assert 'style="color: red"' in cleaned

    def test_comments_removed(self):
        assert sanitize_html("<p>a<!-- secret --></p>") == "<p>a</p>"

    def test_iframe_needs_https(self):
        assert "iframe" not in sanitize_html('<iframe src="http://video.example/1"></iframe>')
        assert "iframe" in sanitize_html('<iframe src="https://video.example/1"></iframe>')

    def test_empty_input(self):
        assert sanitize_html("") == ""
        assert sanitize_html(None) == ""


class TestProfiles:

    def test_announcement_drops_tables(self):
        cleaned = sanitize_announcement_content("<table><tr><td>cell</td></tr></table>")
        assert "<table" not in cleaned
        assert "cell" in cleaned

    def test_preview_drops_links(self):
        cleaned = sanitize_for_preview('<p><a href="https://x.example">link</a> <strong>b</strong></p>')
        assert cleaned == "<p>link <strong>b</strong></p>"


class TestInspection:

    @pytest.mark.parametrize("html,expected", [
        ("<p>fine</p>", False),
        ("<script>x</script>", True),
        ('<div onclick="x()">a</div>', True),
        ('<a href="javascript:void(0)">a</a>', True),
        ('<span style="width: expression(alert(1))">a</span>', True),
    ])
    def test_contains_dangerous_content(self, html, expected):
        assert contains_dangerous_content(html) is expected

    def test_extract_text_skips_scripts(self):
        html = "<p>Hello <b>there</b></p><script>var x = 1;</script>"
        assert extract_text_content(html) == "Hello there"
        assert get_text_length(html) == len("Hello there")
