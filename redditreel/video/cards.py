"""Caption card rendering with Pillow.

A card is a solid panel of exactly card_width x card_height pixels holding an
optional "u/author • N points" metadata line and the wrapped body text. Both
font sizes are auto-fitted between their configured min and max so text is
never clipped.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageColor, ImageDraw, ImageFont

from redditreel.config import VideoConfig
from redditreel.errors import CardRenderError
from redditreel.runlog import RunLog
from redditreel.text import PillowFontMetrics, wrap_text

LINE_SPACING = 1.2

DEFAULT_BACKGROUND = "DarkSlateGray"
DEFAULT_FONT_COLOR = "white"
DEFAULT_METADATA_COLOR = "lightgray"

SYSTEM_FONTS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:/Windows/Fonts/arial.ttf",
]

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


def card_padding(width: int, height: int) -> int:
    """Inner padding of a card: 5% of the shorter side, at least 15px."""
    return max(15, int(min(width * 0.05, height * 0.05)))


@lru_cache(maxsize=256)
def load_font(size: int, font_path: str | None = None) -> Font:
    """Load a TrueType font, preferring the configured file then system fonts."""
    size = max(1, int(size))
    candidates = ([font_path] if font_path else []) + SYSTEM_FONTS
    for candidate in candidates:
        if Path(candidate).exists():
            try:
                return ImageFont.truetype(candidate, size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)


def _color(value: str, fallback: str, log: RunLog | None) -> tuple[int, ...]:
    try:
        return ImageColor.getrgb(value)
    except (ValueError, AttributeError):
        if log is not None:
            log.warn(f"Unrecognised colour '{value}', using {fallback}")
        return ImageColor.getrgb(fallback)


@dataclass
class FittedText:
    font: Font
    size: int
    lines: list[str]
    line_height: float

    @property
    def height(self) -> float:
        return len(self.lines) * self.line_height


@dataclass
class CardStyle:
    width: int = 800
    height: int = 600
    background: str = DEFAULT_BACKGROUND
    font_color: str = DEFAULT_FONT_COLOR
    metadata_color: str = DEFAULT_METADATA_COLOR
    font_path: Path | None = None
    content_size: int = 36
    content_min: int = 16
    content_max: int = 60
    metadata_size: int = 24
    metadata_min: int = 12
    metadata_max: int = 32

    @classmethod
    def from_config(cls, config: VideoConfig) -> "CardStyle":
        return cls(
            width=config.card_width,
            height=config.card_height,
            background=config.card_background_color,
            font_color=config.card_font_color,
            metadata_color=config.card_metadata_font_color,
            font_path=config.font_path,
            content_size=config.content_font_size,
            content_min=config.content_min_font_size,
            content_max=config.content_max_font_size,
            metadata_size=config.metadata_font_size,
            metadata_min=config.metadata_min_font_size,
            metadata_max=config.metadata_max_font_size,
        )

    @property
    def padding(self) -> int:
        return card_padding(self.width, self.height)

    def text_box(self) -> tuple[int, int]:
        """Width and height available to text inside the padding."""
        return self.width - 2 * self.padding, self.height - 2 * self.padding


def metadata_line(author: str | None, score: int | None) -> str | None:
    if not author:
        return None
    line = f"u/{author}"
    if score is not None:
        line += f" • {score} points"
    return line


class CardRenderer:
    """Draws caption cards to PNG files."""

    def __init__(self, style: CardStyle, log: RunLog | None = None):
        self.style = style
        self.log = log
        self._background = _color(style.background, DEFAULT_BACKGROUND, log)
        self._font_color = _color(style.font_color, DEFAULT_FONT_COLOR, log)
        self._metadata_color = _color(style.metadata_color, DEFAULT_METADATA_COLOR, log)

    def _font(self, size: int) -> Font:
        path = str(self.style.font_path) if self.style.font_path else None
        return load_font(size, path)

    def _layout(self, text: str, size: int, max_width: float) -> FittedText:
        font = self._font(size)
        metrics = PillowFontMetrics(font)
        return FittedText(
            font=font,
            size=size,
            lines=wrap_text(text, metrics, max_width),
            line_height=metrics.line_height() * LINE_SPACING,
        )

    def fit_text(
        self,
        text: str,
        max_width: float,
        max_height: float,
        target: int,
        min_size: int,
        max_size: int,
    ) -> FittedText:
        """Pick the font size for `text` inside a max_width x max_height box.

        Starts at the target (clamped to [min_size, max_size]), shrinks until
        the wrapped text fits or min_size is reached, then grows back while it
        still fits and stays below the target.
        """
        target = max(min_size, min(target, max_size))
        size = target
        fitted = self._layout(text, size, max_width)
        while size > min_size and fitted.height > max_height:
            size -= 1
            fitted = self._layout(text, size, max_width)
        while size < target:
            bigger = self._layout(text, size + 1, max_width)
            if bigger.height > max_height:
                break
            size, fitted = size + 1, bigger
        if fitted.height > max_height and self.log is not None:
            self.log.detail(f"Text still overflows the card at minimum font size {min_size}")
        return fitted

    def render(
        self,
        text: str,
        output_path: Path,
        author: str | None = None,
        score: int | None = None,
    ) -> Path:
        """Render one card; raises CardRenderError on failure."""
        style = self.style
        pad = style.padding
        box_w, box_h = style.text_box()
        if box_w <= 0 or box_h <= 0:
            raise CardRenderError(f"Card {style.width}x{style.height} leaves no room for text")

        image = Image.new("RGB", (style.width, style.height), self._background)
        draw = ImageDraw.Draw(image)
        y = float(pad)

        meta = metadata_line(author, score)
        if meta:
            fitted_meta = self.fit_text(
                meta, box_w, box_h / 4,
                style.metadata_size, style.metadata_min, style.metadata_max,
            )
            for line in fitted_meta.lines:
                draw.text((pad, y), line, font=fitted_meta.font, fill=self._metadata_color)
                y += fitted_meta.line_height
            y += pad / 2

        remaining = style.height - pad - y
        body = self.fit_text(
            text or "", box_w, remaining,
            style.content_size, style.content_min, style.content_max,
        )
        # Centre the body block in whatever height is left
        y += max(0.0, (remaining - body.height) / 2)
        for line in body.lines:
            line_w = PillowFontMetrics(body.font).text_width(line)
            x = pad + max(0.0, (box_w - line_w) / 2)
            draw.text((x, y), line, font=body.font, fill=self._font_color)
            y += body.line_height

        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            image.save(output_path, format="PNG")
        except OSError as e:
            raise CardRenderError(f"Could not save card {output_path.name}: {e}") from e
        return output_path
