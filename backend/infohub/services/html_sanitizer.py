"""
HTML sanitization for rich-text editor content.

Allowlist based: anything not explicitly allowed is removed. Dangerous
elements (script, object, form controls...) are dropped together with their
content; other unknown tags are unwrapped so their text survives.
"""

import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Comment, Tag

DEFAULT_ALLOWED_TAGS = frozenset({
    'p', 'br', 'strong', 'em', 'b', 'i', 'u', 's', 'sub', 'sup',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'ul', 'ol', 'li',
    'blockquote', 'pre', 'code',
    'a', 'img',
    'div', 'span', 'font',
    'table', 'thead', 'tbody', 'tr', 'th', 'td',
    'iframe',
})

DEFAULT_ALLOWED_ATTRS = frozenset({
    'href', 'target', 'rel',
    'src', 'alt', 'width', 'height', 'style',
    'class', 'color', 'face', 'size',
    'allow', 'allowfullscreen', 'frameborder', 'scrolling',
})

ANNOUNCEMENT_ALLOWED_TAGS = frozenset({
    'p', 'br', 'strong', 'em', 'b', 'i', 'u', 's', 'sub', 'sup',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'ul', 'ol', 'li',
    'blockquote', 'code',
    'a', 'img',
    'div', 'span', 'font',
})

ANNOUNCEMENT_ALLOWED_ATTRS = frozenset({
    'href', 'target', 'rel',
    'src', 'alt', 'width', 'height',
    'style', 'class', 'color', 'face', 'size',
})

PREVIEW_ALLOWED_TAGS = frozenset({'p', 'br', 'strong', 'em', 'b', 'i', 'u', 'ul', 'ol', 'li', 'span'})
PREVIEW_ALLOWED_ATTRS = frozenset({'class'})

FORBIDDEN_TAGS = frozenset({
    'script', 'object', 'embed', 'form', 'input', 'button', 'style',
    'textarea', 'select', 'link', 'meta', 'base', 'applet',
})

ALLOWED_CSS_PROPERTIES = frozenset({
    'color', 'background-color', 'font-size', 'font-family', 'font-weight',
    'font-style', 'text-decoration', 'text-align', 'margin', 'padding',
    'border', 'line-height', 'list-style-type',
})

URI_ATTRS = frozenset({'href', 'src'})

# http(s)/mailto/tel schemes, or scheme-less (relative, anchors)
SAFE_URI = re.compile(r'^(?:(?:https?|mailto|tel):|[^a-z]|[a-z+.\-]+(?:[^a-z+.\-:]|$))', re.IGNORECASE)

_CSS_UNSAFE = re.compile(r'expression\s*\(|url\s*\(|javascript:', re.IGNORECASE)


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _is_safe_uri(value: str) -> bool:
    # Browsers ignore control characters and whitespace inside schemes
    compact = re.sub(r'[\x00-\x20]+', '', value)
    return bool(SAFE_URI.match(compact))


def _clean_style(style: str) -> str:
    kept = []
    for declaration in style.split(';'):
        if ':' not in declaration:
            continue
        prop, value = declaration.split(':', 1)
        prop = prop.strip().lower()
        value = value.strip()
        if prop in ALLOWED_CSS_PROPERTIES and value and not _CSS_UNSAFE.search(value):
            kept.append(f"{prop}: {value}")
    return '; '.join(kept)


def _clean_attributes(tag: Tag, allowed_attrs: Iterable[str]) -> None:
    for name in list(tag.attrs):
        lowered = name.lower()
        value = tag.attrs[name]
        if lowered.startswith('on') or lowered not in allowed_attrs:
            del tag.attrs[name]
            continue
        if isinstance(value, list):
            value = ' '.join(value)
        if lowered in URI_ATTRS and not _is_safe_uri(value):
            del tag.attrs[name]
        elif lowered == 'style':
            cleaned = _clean_style(value)
            if cleaned:
                tag.attrs[name] = cleaned
            else:
                del tag.attrs[name]

    if tag.name == 'a' and tag.get('target') == '_blank':
        tag['rel'] = 'noopener noreferrer'
    if tag.name == 'iframe' and not str(tag.get('src', '')).lower().startswith('https://'):
        tag.decompose()


def sanitize_html(
    html: str,
    allowed_tags: Optional[Iterable[str]] = None,
    allowed_attrs: Optional[Iterable[str]] = None,
) -> str:
    """Return `html` with everything outside the allowlists removed"""
    tags = frozenset(allowed_tags) if allowed_tags is not None else DEFAULT_ALLOWED_TAGS
    attrs = frozenset(allowed_attrs) if allowed_attrs is not None else DEFAULT_ALLOWED_ATTRS

    soup = _parse(html)

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(FORBIDDEN_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        if tag.name not in tags:
            tag.unwrap()
        else:
            _clean_attributes(tag, attrs)

    return str(soup).strip()


def sanitize_announcement_content(html: str) -> str:
    """Formatting kept for announcement bodies; no tables or embeds"""
    return sanitize_html(html, ANNOUNCEMENT_ALLOWED_TAGS, ANNOUNCEMENT_ALLOWED_ATTRS)


def sanitize_for_preview(html: str) -> str:
    """Basic inline formatting only, for list previews and cards"""
    return sanitize_html(html, PREVIEW_ALLOWED_TAGS, PREVIEW_ALLOWED_ATTRS)


def contains_dangerous_content(html: str) -> bool:
    """True if the markup carries scripts, event handlers or unsafe URLs"""
    soup = _parse(html)
    if soup.find(FORBIDDEN_TAGS):
        return True
    for tag in soup.find_all(True):
        for name, value in tag.attrs.items():
            if name.lower().startswith('on'):
                return True
            if isinstance(value, list):
                value = ' '.join(value)
            if name.lower() in URI_ATTRS and not _is_safe_uri(value):
                return True
            if name.lower() == 'style' and _CSS_UNSAFE.search(value):
                return True
    return False


def extract_text_content(html: str) -> str:
    """Visible text of the markup, scripts excluded"""
    soup = _parse(html)
    for tag in soup.find_all(FORBIDDEN_TAGS):
        tag.decompose()
    return soup.get_text().strip()


def get_text_length(html: str) -> int:
    return len(extract_text_content(html))
