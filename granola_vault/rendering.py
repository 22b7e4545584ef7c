"""Markdown rendering for the remote content formats.

ProseMirror JSON (the editor's native document tree) and the HTML rendition
of the last viewed panel both reduce to plain Markdown here.
"""

from __future__ import annotations

import html
from typing import Any

from bs4 import BeautifulSoup
from bs4.element import NavigableString, Tag

_BLOCK_SEPARATOR = "\n\n"


# ---------------------------------------------------------------------------
# ProseMirror
# ---------------------------------------------------------------------------


def _apply_marks(text: str, marks: list[dict[str, Any]] | None) -> str:
    for mark in marks or ():
        kind = mark.get("type")
        if kind in ("bold", "strong"):
            text = f"**{text}**"
        elif kind in ("italic", "em"):
            text = f"*{text}*"
        elif kind == "code":
            text = f"`{text}`"
        elif kind == "strike":
            text = f"~~{text}~~"
        elif kind == "link":
            href = (mark.get("attrs") or {}).get("href")
            if href:
                text = f"[{text}]({href})"
    return text


def _inline(nodes: list[dict[str, Any]] | None) -> str:
    parts: list[str] = []
    for node in nodes or ():
        kind = node.get("type")
        if kind == "text":
            parts.append(_apply_marks(html.unescape(node.get("text", "")), node.get("marks")))
        elif kind == "hardBreak":
            parts.append("  \n")
        else:
            parts.append(_inline(node.get("content")))
    return "".join(parts)


def _list(node: dict[str, Any], *, ordered: bool, depth: int) -> str:
    lines: list[str] = []
    indent = "  " * depth
    start = int((node.get("attrs") or {}).get("start") or 1)
    for index, item in enumerate(node.get("content") or ()):
        marker = f"{start + index}." if ordered else "-"
        text_parts: list[str] = []
        nested: list[str] = []
        for child in item.get("content") or ():
            kind = child.get("type")
            if kind in ("bulletList", "orderedList"):
                nested.append(_list(child, ordered=kind == "orderedList", depth=depth + 1))
            else:
                text_parts.append(_inline(child.get("content")))
        lines.append(f"{indent}{marker} {' '.join(p for p in text_parts if p).strip()}")
        lines.extend(nested)
    return "\n".join(lines)


def _block(node: dict[str, Any]) -> str:
    kind = node.get("type")
    if kind == "heading":
        level = int((node.get("attrs") or {}).get("level") or 1)
        return f"{'#' * max(1, min(level, 6))} {_inline(node.get('content')).strip()}"
    if kind == "paragraph":
        return _inline(node.get("content")).strip()
    if kind == "bulletList":
        return _list(node, ordered=False, depth=0)
    if kind == "orderedList":
        return _list(node, ordered=True, depth=0)
    if kind == "blockquote":
        inner = _BLOCK_SEPARATOR.join(_block(child) for child in node.get("content") or ())
        return "\n".join(f"> {line}" if line else ">" for line in inner.splitlines())
    if kind == "codeBlock":
        language = (node.get("attrs") or {}).get("language") or ""
        code = "".join(child.get("text", "") for child in node.get("content") or ())
        return f"```{language}\n{code}\n```"
    if kind == "horizontalRule":
        return "***"
    if kind == "text":
        return _inline([node])
    return _inline(node.get("content"))


def prosemirror_to_markdown(doc: dict[str, Any] | None) -> str:
    if not doc or not isinstance(doc, dict):
        return ""
    blocks = [_block(node) for node in doc.get("content") or ()]
    return _BLOCK_SEPARATOR.join(block for block in blocks if block.strip()).strip()


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

_HEADINGS = {f"h{level}": level for level in range(1, 7)}


def _html_inline(element: Tag | NavigableString) -> str:
    if isinstance(element, NavigableString):
        return str(element)
    name = element.name
    inner = "".join(_html_inline(child) for child in element.children)
    if name in ("strong", "b"):
        return f"**{inner}**" if inner.strip() else inner
    if name in ("em", "i"):
        return f"*{inner}*" if inner.strip() else inner
    if name == "code":
        return f"`{inner}`"
    if name == "a" and element.get("href"):
        return f"[{inner}]({element['href']})"
    if name == "br":
        return "  \n"
    return inner


def _html_list(element: Tag, *, ordered: bool, depth: int) -> str:
    lines: list[str] = []
    for index, item in enumerate(element.find_all("li", recursive=False), start=1):
        text_parts: list[str] = []
        nested: list[str] = []
        for child in item.children:
            if isinstance(child, Tag) and child.name in ("ul", "ol"):
                nested.append(_html_list(child, ordered=child.name == "ol", depth=depth + 1))
            else:
                text_parts.append(_html_inline(child))
        marker = f"{index}." if ordered else "-"
        lines.append(f"{'  ' * depth}{marker} {' '.join(''.join(text_parts).split())}")
        lines.extend(nested)
    return "\n".join(lines)


def _html_block(element: Tag | NavigableString) -> str:
    if isinstance(element, NavigableString):
        return str(element).strip()
    name = element.name
    if name in _HEADINGS:
        return f"{'#' * _HEADINGS[name]} {_html_inline(element).strip()}"
    if name == "ul":
        return _html_list(element, ordered=False, depth=0)
    if name == "ol":
        return _html_list(element, ordered=True, depth=0)
    if name == "pre":
        return f"```\n{element.get_text()}\n```"
    if name == "hr":
        return "***"
    if name == "blockquote":
        inner = _BLOCK_SEPARATOR.join(b for b in (_html_block(c) for c in element.children) if b)
        return "\n".join(f"> {line}" if line else ">" for line in inner.splitlines())
    if name in ("div", "section", "article", "body"):
        inner = [_html_block(child) for child in element.children]
        return _BLOCK_SEPARATOR.join(block for block in inner if block)
    return _html_inline(element).strip()


def html_to_markdown(markup: str | None) -> str:
    if not markup or not markup.strip():
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    blocks = [_html_block(child) for child in soup.children]
    return _BLOCK_SEPARATOR.join(block for block in blocks if block).strip()


__all__ = ["prosemirror_to_markdown", "html_to_markdown"]
