"""Burned-in subtitle styling for scene segments."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class CaptionStyle:
    """Configuration for the drawtext subtitle overlay."""

    font_file: Optional[str] = None
    font_size: int = 48
    color: str = "white"
    box_color: Optional[str] = "black@0.5"
    box_border: int = 10
    bottom_margin: int = 100

    def with_font(self, font_file: Optional[str]) -> "CaptionStyle":
        if not font_file:
            return self
        return CaptionStyle(
            font_file=font_file,
            font_size=self.font_size,
            color=self.color,
            box_color=self.box_color,
            box_border=self.box_border,
            bottom_margin=self.bottom_margin,
        )


# Preset styles
STYLES: Dict[str, CaptionStyle] = {
    "default": CaptionStyle(),
    "large": CaptionStyle(font_size=64, box_border=14, bottom_margin=120),
    "minimal": CaptionStyle(font_size=40, box_color=None, box_border=0, bottom_margin=60),
}


def get_style(name: str) -> CaptionStyle:
    """Look up a preset caption style.

    Raises:
        ValueError: If the style name is not registered.
    """
    if name not in STYLES:
        raise ValueError(f"Unknown caption style: {name}. Available: {list(STYLES.keys())}")
    return STYLES[name]


def register_style(name: str, style: CaptionStyle) -> None:
    STYLES[name] = style


def escape_drawtext(text: str) -> str:
    """Escape caption text for use inside a quoted drawtext value."""
    return (
        text.replace("\\", "\\\\")
        .replace("'", "'\\''")
        .replace(":", "\\:")
        .replace(",", "\\,")
        .replace("%", "\\%")
    )


def drawtext_filter(text: str, style: CaptionStyle) -> str:
    """Build the ffmpeg drawtext filter that burns ``text`` into the frame."""
    options = [f"text='{escape_drawtext(text)}'"]
    if style.font_file:
        options.append(f"fontfile={style.font_file}")
    options.extend([
        f"fontsize={style.font_size}",
        f"fontcolor={style.color}",
        "x=(w-text_w)/2",
        f"y=h-{style.bottom_margin}",
    ])
    if style.box_color:
        options.extend([
            "box=1",
            f"boxcolor={style.box_color}",
            f"boxborderw={style.box_border}",
        ])
    return "drawtext=" + ":".join(options)
