# rich_text.py
import html
import re

from bs4 import BeautifulSoup

ALLOWED_TAGS = {
    "p", "br", "h1", "h2", "h3", "h4", "h5", "h6",
    "b", "strong", "i", "em", "u", "s", "strike",
    "ul", "ol", "li", "blockquote", "pre", "code",
    "a", "img", "table", "thead", "tbody", "tfoot", "tr", "td", "th",
    "hr", "small", "sup", "sub", "span", "div",
}

ALLOWED_STYLE_PROPS = {
    "color", "background-color", "font-size", "line-height", "font-weight",
    "font-style", "text-decoration", "text-align",
    "margin-top", "margin-bottom", "margin-left", "margin-right",
    "padding-top", "padding-bottom", "padding-left", "padding-right",
    "border", "border-color", "border-width", "border-style", "border-radius",
    "display", "max-width", "width", "height",
}

# Removed together with everything inside them
DANGEROUS_TAGS = ["script", "style", "iframe", "object", "embed", "link", "meta"]

BLOCK_END_TAGS = ["p", "div", "li", "ul", "ol"]

UNSAFE_SCHEMES = ("javascript:", "data:", "vbscript:")
HTML_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")
SIZE_TOKEN_RE = re.compile(r"^[0-9]{1,4}(%|px)?$")
CLASS_TOKEN_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def _parse(raw: str) -> BeautifulSoup:
    soup = BeautifulSoup(raw, "html.parser")
    for tag in soup.find_all(DANGEROUS_TAGS):
        if not tag.decomposed:
            tag.decompose()
    return soup


def _sanitize_style(value: str) -> str:
    declarations = []
    for declaration in value.split(";"):
        prop, sep, val = declaration.partition(":")
        if not sep:
            continue
        prop = prop.strip().lower()
        val = val.strip()
        if prop not in ALLOWED_STYLE_PROPS:
            continue
        lowered = val.lower()
        if "expression(" in lowered or "javascript:" in lowered or "url(" in lowered:
            continue
        declarations.append(f"{prop}: {val}")
    return "; ".join(declarations)


def _is_local_path(value: str) -> bool:
    # "//host" is protocol-relative, not local
    return value.startswith("/") and not value.startswith(("//", "/\\"))


def _sanitize_href(value: str) -> str:
    href = (value or "").strip()
    lowered = href.lower()
    if not href or lowered.startswith(UNSAFE_SCHEMES):
        return ""
    if lowered.startswith(("http://", "https://", "mailto:", "tel:")) or _is_local_path(href) or href.startswith("#"):
        return href
    return ""


def _sanitize_src(value: str) -> str:
    src = (value or "").strip()
    lowered = src.lower()
    if not src or lowered.startswith(UNSAFE_SCHEMES):
        return ""
    if lowered.startswith(("http://", "https://")) or _is_local_path(src):
        return src
    return ""


def _attr(tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return (value or "").strip()


def _safe_attributes(tag) -> dict:
    attrs = {}
    style = _sanitize_style(_attr(tag, "style"))
    if style:
        attrs["style"] = style

    if tag.name == "a":
        href = _sanitize_href(_attr(tag, "href"))
        if href:
            attrs["href"] = href
        if _attr(tag, "target") == "_blank":
            attrs["target"] = "_blank"
            attrs["rel"] = "noopener noreferrer"

    if tag.name == "img":
        src = _sanitize_src(_attr(tag, "src"))
        if src:
            attrs["src"] = src
        for name in ("alt", "title"):
            if _attr(tag, name):
                attrs[name] = _attr(tag, name)
        for name in ("width", "height"):
            if SIZE_TOKEN_RE.match(_attr(tag, name)):
                attrs[name] = _attr(tag, name)

    classes = [c for c in _attr(tag, "class").split() if CLASS_TOKEN_RE.match(c)][:24]
    if classes:
        attrs["class"] = " ".join(classes)
    return attrs


def sanitize_rich_text(raw: str) -> str:
    """Keep only allow-listed tags and attributes; dangerous elements are dropped with their content."""
    if not raw:
        return ""
    soup = _parse(raw)
    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        tag.attrs = _safe_attributes(tag)
        if tag.name == "img" and "src" not in tag.attrs:
            tag.decompose()
    return str(soup)


def normalize_rich_text_input(raw: str) -> str:
    """
    Turn editor input into safe HTML.

    Plain text becomes paragraphs: blank lines split paragraphs and single
    newlines become <br />. Input that already contains tags is only sanitized.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return ""
    if HTML_TAG_RE.search(trimmed):
        return sanitize_rich_text(trimmed)

    paragraphs = [p.strip() for p in re.split(r"\n{2,}", trimmed) if p.strip()]
    body = "".join(f"<p>{html.escape(p).replace(chr(10), '<br />')}</p>" for p in paragraphs)
    return sanitize_rich_text(body)


def strip_rich_text(raw: str) -> str:
    if not raw:
        return ""
    soup = _parse(raw)
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        li.insert(0, "• ")
    for tag in soup.find_all(BLOCK_END_TAGS):
        tag.append("\n")

    text = soup.get_text(" ").replace("\r", "")
    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r"\s*\n\s*", "\n", text)
    return text.strip()


def has_rich_text_content(raw: str) -> bool:
    return bool(strip_rich_text(raw))
