"""Configuration management."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .models.task import PollPolicy

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


class PipelineSettings(BaseModel):
    """Run-time policy handed to the orchestrator."""

    image_poll: PollPolicy = Field(default_factory=PollPolicy, description="Image job polling")
    speech_poll: PollPolicy = Field(
        default_factory=lambda: PollPolicy(interval=2.0, max_attempts=90),
        description="Speech job polling (asynchronous backends only)",
    )
    max_chunk_chars: int = Field(default=250, description="Narration service input cap, in characters", gt=0)
    subtitle_separator: str = Field(default="。", description="Inserted between subtitles in the narration script")
    image_name: str = Field(default="scene_{index}.png", description="Scene image file name template")
    audio_name: str = Field(default="audio.wav", description="Narration file name")
    chunk_suffix: str = Field(default=".wav", description="Extension of per-chunk narration files")
    image_workers: int = Field(default=1, description="Concurrent image jobs", ge=1)

    model_config = {"frozen": True}

    def image_path(self, work_dir: Path, index: int) -> Path:
        return work_dir / self.image_name.format(index=index)

    def audio_path(self, work_dir: Path) -> Path:
        return work_dir / self.audio_name


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    dashscope_api_key: str = Field(
        default_factory=lambda: os.getenv("DASHSCOPE_API_KEY", ""),
        description="DashScope API key"
    )
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""),
        description="Anthropic API key (only for the anthropic storyboard backend)"
    )

    # Paths
    work_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("AUTOVIDEO_WORK_DIR", "./output")),
        description="Working directory for intermediate assets"
    )

    # Model settings
    storyboard_backend: str = Field(
        default_factory=lambda: os.getenv("AUTOVIDEO_STORYBOARD_BACKEND", "dashscope"),
        description="Decomposition backend: 'dashscope' or 'anthropic'"
    )
    text_model: str = Field(default="qwen-plus", description="DashScope text model")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", description="Claude model")
    image_model: str = Field(default="wanx-v1", description="DashScope image model")
    image_size: str = Field(default="1280*720", description="Generated image size")
    image_style: str = Field(default="<photography>", description="Image style preset")
    tts_model: str = Field(default="qwen3-tts-flash", description="DashScope speech model")
    tts_voice: str = Field(
        default_factory=lambda: os.getenv("AUTOVIDEO_TTS_VOICE", "Cherry"),
        description="Narration voice"
    )
    tts_sample_rate: int = Field(default=24000, description="Narration sample rate")

    # Network and polling
    http_timeout: float = Field(
        default_factory=lambda: _env_float("AUTOVIDEO_HTTP_TIMEOUT", 300.0),
        description="Per-request timeout in seconds"
    )
    image_poll_interval: float = Field(
        default_factory=lambda: _env_float("AUTOVIDEO_IMAGE_POLL_INTERVAL", 5.0),
        description="Seconds between image task polls"
    )
    image_poll_attempts: int = Field(
        default_factory=lambda: _env_int("AUTOVIDEO_IMAGE_POLL_ATTEMPTS", 60),
        description="Image task polls before giving up"
    )
    speech_poll_interval: float = Field(
        default_factory=lambda: _env_float("AUTOVIDEO_SPEECH_POLL_INTERVAL", 2.0),
        description="Seconds between speech task polls"
    )
    speech_poll_attempts: int = Field(
        default_factory=lambda: _env_int("AUTOVIDEO_SPEECH_POLL_ATTEMPTS", 90),
        description="Speech task polls before giving up"
    )

    # Pipeline
    max_chunk_chars: int = Field(
        default_factory=lambda: _env_int("AUTOVIDEO_TTS_MAX_CHARS", 250),
        description="Narration service input cap, in characters"
    )
    subtitle_separator: str = Field(default="。", description="Separator between subtitles")
    image_workers: int = Field(
        default_factory=lambda: _env_int("AUTOVIDEO_IMAGE_WORKERS", 1),
        description="Concurrent image jobs"
    )

    # Rendering
    frame_rate: int = Field(default=30, description="Segment frame rate")
    caption_font: Optional[str] = Field(
        default_factory=lambda: os.getenv("AUTOVIDEO_CAPTION_FONT") or None,
        description="Font file for burned-in subtitles"
    )
    ffmpeg_binary: str = Field(
        default_factory=lambda: os.getenv("AUTOVIDEO_FFMPEG", "ffmpeg"),
        description="Media renderer executable"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def validate_required(self) -> None:
        """Validate that required credentials are set.

        Raises:
            ValueError: If a credential needed by the selected backends is missing.
        """
        missing: list[str] = []

        if not self.dashscope_api_key:
            missing.append("DASHSCOPE_API_KEY")
        if self.storyboard_backend == "anthropic" and not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        if self.storyboard_backend not in ("dashscope", "anthropic"):
            raise ValueError(
                f"Unknown storyboard backend: {self.storyboard_backend}. "
                "Use 'dashscope' or 'anthropic'."
            )

        if missing:
            raise ValueError(
                f"Missing required configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables or pass --api-key."
            )

    def pipeline_settings(self) -> PipelineSettings:
        """Build the orchestrator policy from this configuration."""
        return PipelineSettings(
            image_poll=PollPolicy(
                interval=self.image_poll_interval,
                max_attempts=self.image_poll_attempts,
            ),
            speech_poll=PollPolicy(
                interval=self.speech_poll_interval,
                max_attempts=self.speech_poll_attempts,
            ),
            max_chunk_chars=self.max_chunk_chars,
            subtitle_separator=self.subtitle_separator,
            image_workers=self.image_workers,
        )


# Global config instance
config = Config()
