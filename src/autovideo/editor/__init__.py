"""Media rendering and assembly."""

from .audio import AudioAssembler, get_audio_duration
from .captions import STYLES, CaptionStyle, drawtext_filter, escape_drawtext, get_style, register_style
from .compositor import SegmentAssembler
from .renderer import FfmpegRenderer, MediaRenderer, write_concat_list

__all__ = [
    # Renderer
    "MediaRenderer",
    "FfmpegRenderer",
    "write_concat_list",
    # Captions
    "CaptionStyle",
    "STYLES",
    "drawtext_filter",
    "escape_drawtext",
    "get_style",
    "register_style",
    # Assembly
    "AudioAssembler",
    "SegmentAssembler",
    "get_audio_duration",
]
