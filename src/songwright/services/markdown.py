"""Minimal Markdown parser and HTML renderer for song reports.

Only the constructs the reports emit are understood: ATX headings up to
level three, horizontal rules, fenced code, bullet lists, blockquotes,
single-line karaoke ``<div>`` blocks, paragraphs, and the inline forms for
images, links, strong and emphasis. Any other HTML in the source is escaped.
Parsing produces a small node tree which the renderer turns into HTML, so
block elements are never nested inside paragraphs.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union


@dataclass
class Text:
    value: str


@dataclass
class Strong:
    children: List["Inline"]


@dataclass
class Emphasis:
    children: List["Inline"]


@dataclass
class Image:
    alt: str
    target: str


@dataclass
class Link:
    children: List["Inline"]
    url: str


Inline = Union[Text, Strong, Emphasis, Image, Link]
InlineLine = List[Inline]


@dataclass
class Heading:
    level: int
    children: InlineLine


@dataclass
class Paragraph:
    lines: List[InlineLine] = field(default_factory=list)


@dataclass
class BulletList:
    items: List[InlineLine] = field(default_factory=list)


@dataclass
class CodeBlock:
    text: str


@dataclass
class Blockquote:
    lines: List[InlineLine] = field(default_factory=list)


@dataclass
class Rule:
    pass


@dataclass
class Karaoke:
    lines: List[str]


Block = Union[Heading, Paragraph, BulletList, CodeBlock, Blockquote, Rule, Karaoke]
ImageResolver = Callable[[str], str]

_INLINE_PATTERN = re.compile(
    r"!\[(?P<img_alt>[^\]]*)\]\((?P<img_src>[^)\s]*)\)"
    r"|\[(?P<link_text>[^\]]*)\]\((?P<link_url>[^)\s]*)\)"
    r"|\*\*(?P<strong>.+?)\*\*"
    r"|\*(?P<em>[^*]+?)\*"
)
_HEADING_PATTERN = re.compile(r"^(#{1,3}) (.*)$")
_LIST_ITEM_PATTERN = re.compile(r"^\s*[-*] (.*)$")
_FENCE = "```"
_RULE = "---"
COVER_PLACEHOLDER_PATTERN = re.compile(r"^cover-(\d+)\.png$")
_KARAOKE_PATTERN = re.compile(r'^<div class="karaoke">(.*)</div>$')
_KARAOKE_BREAK = "<br />"


def parse_inline(text: str) -> InlineLine:
    nodes: InlineLine = []
    position = 0
    for match in _INLINE_PATTERN.finditer(text):
        if match.start() > position:
            nodes.append(Text(text[position : match.start()]))
        if match.group("img_src") is not None:
            nodes.append(Image(alt=match.group("img_alt"), target=match.group("img_src")))
        elif match.group("link_url") is not None:
            nodes.append(Link(children=parse_inline(match.group("link_text")), url=match.group("link_url")))
        elif match.group("strong") is not None:
            nodes.append(Strong(children=parse_inline(match.group("strong"))))
        else:
            nodes.append(Emphasis(children=parse_inline(match.group("em"))))
        position = match.end()
    if position < len(text):
        nodes.append(Text(text[position:]))
    return nodes


def parse_markdown(text: str) -> List[Block]:
    lines = text.replace("\r\n", "\n").split("\n")
    blocks: List[Block] = []
    paragraph: List[InlineLine] = []

    def flush_paragraph() -> None:
        if paragraph:
            blocks.append(Paragraph(lines=list(paragraph)))
            paragraph.clear()

    index = 0
    while index < len(lines):
        stripped = lines[index].strip()
        index += 1

        if stripped.startswith(_FENCE):
            flush_paragraph()
            if len(stripped) > 2 * len(_FENCE) - 1 and stripped.endswith(_FENCE):
                blocks.append(CodeBlock(stripped[len(_FENCE) : -len(_FENCE)].strip()))
                continue
            body: List[str] = []
            while index < len(lines) and not lines[index].strip().startswith(_FENCE):
                body.append(lines[index])
                index += 1
            index += 1  # closing fence
            blocks.append(CodeBlock("\n".join(body).strip()))
            continue

        if not stripped:
            flush_paragraph()
            continue

        heading = _HEADING_PATTERN.match(stripped)
        if heading:
            flush_paragraph()
            blocks.append(Heading(len(heading.group(1)), parse_inline(heading.group(2).strip())))
            continue

        if stripped == _RULE:
            flush_paragraph()
            blocks.append(Rule())
            continue

        item = _LIST_ITEM_PATTERN.match(stripped)
        if item:
            flush_paragraph()
            if blocks and isinstance(blocks[-1], BulletList):
                blocks[-1].items.append(parse_inline(item.group(1)))
            else:
                blocks.append(BulletList(items=[parse_inline(item.group(1))]))
            continue

        if stripped.startswith("> ") or stripped == ">":
            flush_paragraph()
            quoted = parse_inline(stripped[2:].strip())
            previous = lines[index - 2].strip() if index >= 2 else ""
            if blocks and isinstance(blocks[-1], Blockquote) and previous.startswith(">"):
                blocks[-1].lines.append(quoted)
            else:
                blocks.append(Blockquote(lines=[quoted]))
            continue

        karaoke = _KARAOKE_PATTERN.match(stripped)
        if karaoke:
            flush_paragraph()
            parts = karaoke.group(1).split(_KARAOKE_BREAK)
            blocks.append(Karaoke([html.unescape(part) for part in parts]))
            continue

        paragraph.append(parse_inline(stripped))

    flush_paragraph()
    return blocks


def karaoke_markup(lines: Sequence[str]) -> str:
    """Karaoke block markup; the only HTML the parser accepts from Markdown."""
    body = _KARAOKE_BREAK.join(html.escape(line, quote=False) for line in lines)
    return f'<div class="karaoke">{body}</div>'


def cover_placeholder(index: int) -> str:
    """Bundle-relative filename for the cover at zero-based ``index``."""
    return f"cover-{index + 1}.png"


def cover_image_resolver(urls: Sequence[str]) -> ImageResolver:
    """Map ``cover-N.png`` placeholders back to in-memory cover urls."""

    def _resolve(target: str) -> str:
        match = COVER_PLACEHOLDER_PATTERN.match(target)
        if match is None:
            return target
        position = int(match.group(1)) - 1
        if 0 <= position < len(urls):
            return urls[position]
        return target

    return _resolve


class HtmlRenderer:
    def __init__(self, image_resolver: Optional[ImageResolver] = None) -> None:
        self._image_resolver = image_resolver

    def render(self, blocks: Sequence[Block]) -> str:
        return "\n".join(self._render_block(block) for block in blocks)

    def _render_block(self, block: Block) -> str:
        if isinstance(block, Heading):
            return f"<h{block.level}>{self._render_inline(block.children)}</h{block.level}>"
        if isinstance(block, Rule):
            return "<hr />"
        if isinstance(block, CodeBlock):
            return f"<pre>{html.escape(block.text, quote=False)}</pre>"
        if isinstance(block, BulletList):
            items = "".join(f"<li>{self._render_inline(item)}</li>" for item in block.items)
            return f"<ul>{items}</ul>"
        if isinstance(block, Blockquote):
            return f"<blockquote>{self._render_lines(block.lines)}</blockquote>"
        if isinstance(block, Karaoke):
            return karaoke_markup(block.lines)
        if block.lines and block.lines[0] and isinstance(block.lines[0][0], Image):
            return self._render_lines(block.lines)
        return f"<p>{self._render_lines(block.lines)}</p>"

    def _render_lines(self, lines: Sequence[InlineLine]) -> str:
        return "<br/>".join(self._render_inline(line) for line in lines)

    def _render_inline(self, nodes: Sequence[Inline]) -> str:
        parts: List[str] = []
        for node in nodes:
            if isinstance(node, Text):
                parts.append(html.escape(node.value, quote=False))
            elif isinstance(node, Strong):
                parts.append(f"<strong>{self._render_inline(node.children)}</strong>")
            elif isinstance(node, Emphasis):
                parts.append(f"<em>{self._render_inline(node.children)}</em>")
            elif isinstance(node, Image):
                src = node.target
                if self._image_resolver is not None:
                    src = self._image_resolver(src)
                parts.append(
                    f'<img src="{html.escape(src)}" alt="{html.escape(node.alt)}" />'
                )
            else:
                parts.append(
                    f'<a href="{html.escape(node.url)}" target="_blank" '
                    f'rel="noopener noreferrer">{self._render_inline(node.children)}</a>'
                )
        return "".join(parts)


def markdown_to_html(text: str, *, image_resolver: Optional[ImageResolver] = None) -> str:
    return HtmlRenderer(image_resolver).render(parse_markdown(text))
