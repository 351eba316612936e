"""
Text preparation for narration and caption cards.

clean_text_for_tts() turns Reddit markdown into something a TTS engine reads
naturally. paginate() splits long text into card-sized pages using real font
metrics, so the same (text, font, box, spacing) always yields the same pages.
"""

import re
from typing import Iterator, Protocol

from PIL import ImageFont


class FontMetrics(Protocol):
    """What pagination needs to know about a font."""

    def text_width(self, text: str) -> float: ...

    def line_height(self) -> float: ...


class PillowFontMetrics:
    """FontMetrics backed by a Pillow font (TrueType or the built-in bitmap font)."""

    def __init__(self, font: ImageFont.FreeTypeFont | ImageFont.ImageFont):
        self.font = font

    def text_width(self, text: str) -> float:
        if not text:
            return 0.0
        left, _, right, _ = self.font.getbbox(text)
        return float(right - left)

    def line_height(self) -> float:
        # "Xg" covers cap height plus descender
        _, top, _, bottom = self.font.getbbox("Xg")
        height = float(bottom - top)
        if height <= 0:
            height = float(getattr(self.font, "size", 12) or 12)
        return height


# ---------------------------------------------------------------------------
# Narration cleanup
# ---------------------------------------------------------------------------

_MD_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_EMPHASIS = [
    re.compile(r"(?<!\\)\*\*\*(.*?)\*\*\*", re.S),
    re.compile(r"(?<!\\)\*\*(.*?)\*\*", re.S),
    re.compile(r"(?<!\\)\*(.*?)\*", re.S),
    re.compile(r"(?<!\\)__(.*?)__", re.S),
    re.compile(r"(?<![\\\w])_(.*?)_(?!\w)", re.S),
    re.compile(r"~~(.*?)~~", re.S),
]
_BLOCKQUOTE = re.compile(r"^\s*>\s*", re.M)
_HEADER = re.compile(r"^\s*#+\s*", re.M)
_RULES = [
    re.compile(r"^\s*(\*\s*){3,}\s*$", re.M),
    re.compile(r"^\s*(-\s*){3,}\s*$", re.M),
    re.compile(r"^\s*(_\s*){3,}\s*$", re.M),
]
_PARAGRAPH_BREAK = re.compile(r"(\r\n|\r|\n){2,}")
_SINGLE_BREAK = re.compile(r"(?<!\.)(\r\n|\r|\n)(?!\s*\.)")
_SPACES = re.compile(r"\s{2,}")


def clean_text_for_tts(text: str | None) -> str:
    """Strip markdown and normalise whitespace so narration sounds natural."""
    if not text or not text.strip():
        return ""

    text = _MD_LINK.sub(r"\1", text)
    # Rules first, before emphasis stripping eats the *** / ___ markers
    for pattern in _RULES:
        text = pattern.sub(". ", text)
    for pattern in _EMPHASIS:
        text = pattern.sub(r"\1", text)
    text = text.replace("`", "")
    text = _BLOCKQUOTE.sub("", text)
    text = _HEADER.sub("", text)

    text = re.sub(r"([.?!])[ \t]*(\r\n|\r|\n){2,}", r"\1 ", text)
    text = _PARAGRAPH_BREAK.sub(". ", text)
    text = _SINGLE_BREAK.sub(" ", text)
    text = re.sub(r"[\r\n]", " ", text)
    text = _SPACES.sub(" ", text).strip()
    # Collapse the ". ." a rule next to a paragraph break leaves behind
    text = re.sub(r"\s+\.", ".", text)
    text = re.sub(r"\.(\s+\.)+", ".", text)
    text = re.sub(r"^\.\s+", "", text).strip()

    if text and text[-1] not in ".?!":
        text += "."
    return text


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def split_long_word(word: str, metrics: FontMetrics, max_width: float) -> Iterator[str]:
    """Yield the longest character runs of `word` that each fit `max_width`.

    A single glyph wider than the box is still emitted on its own, so this
    always terminates.
    """
    if metrics.text_width(word) <= max_width:
        yield word
        return
    chunk = ""
    for char in word:
        if chunk and metrics.text_width(chunk + char) > max_width:
            yield chunk
            chunk = ""
        chunk += char
    if chunk:
        yield chunk


def wrap_words(words: list[str], metrics: FontMetrics, max_width: float) -> list[str]:
    """Greedy line filling: append words while the measured line fits."""
    lines: list[str] = []
    line = ""
    for word in words:
        candidate = f"{line} {word}" if line else word
        if not line or metrics.text_width(candidate) <= max_width:
            line = candidate
        else:
            lines.append(line)
            line = word
    if line:
        lines.append(line)
    return lines


def wrap_text(text: str, metrics: FontMetrics, max_width: float) -> list[str]:
    """Wrap text into lines no wider than max_width, honouring explicit newlines."""
    lines: list[str] = []
    for paragraph in text.splitlines():
        words = [
            piece
            for word in paragraph.split()
            for piece in split_long_word(word, metrics, max_width)
        ]
        lines.extend(wrap_words(words, metrics, max_width) or [""])
    return lines


def paginate(
    text: str,
    metrics: FontMetrics,
    max_width: float,
    max_height: float,
    line_spacing: float = 1.2,
) -> list[str]:
    """Split `text` into pages that fit a max_width x max_height box.

    Lines inside a page are joined with newlines. Blank input gives no pages;
    a degenerate box (width or height <= 0) gives the whole text as one page.
    """
    if not text or not text.strip():
        return []
    if max_width <= 0 or max_height <= 0:
        return [text]

    words = [
        piece
        for word in text.split()
        for piece in split_long_word(word, metrics, max_width)
    ]
    lines = wrap_words(words, metrics, max_width)

    line_height = metrics.line_height() * line_spacing
    if line_height <= 0:
        line_height = 12.0

    pages: list[str] = []
    current: list[str] = []
    for line in lines:
        if current and (len(current) + 1) * line_height > max_height:
            pages.append("\n".join(current))
            current = []
        current.append(line)
    if current:
        pages.append("\n".join(current))

    return [page for page in pages if page.strip()]
