"""CLI entry point for the slideshow generator."""

import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from . import __version__
from .config import Config, config
from .errors import AutoVideoError

app = typer.Typer(
    name="auto-video",
    help="Turn prose into a narrated slideshow video using AI",
    no_args_is_help=True
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"auto-video version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """Auto Video - Create narrated slideshows from text using AI."""
    pass


def read_input(text: Optional[str], file: Optional[Path]) -> str:
    """Return the source text from exactly one of --text / --file."""
    if text and file:
        typer.echo("❌ Pass either --text or --file, not both")
        raise typer.Exit(1)
    if text:
        return text
    if file:
        try:
            return file.read_text(encoding="utf-8")
        except OSError as e:
            typer.echo(f"❌ Failed to read file {file}: {e}")
            raise typer.Exit(1)
    typer.echo("❌ Either --text or --file must be provided")
    raise typer.Exit(1)


def resolve_config(api_key: Optional[str], backend: Optional[str], workers: Optional[int]) -> Config:
    """Apply command-line overrides to the environment configuration."""
    overrides = {}
    if api_key:
        overrides["dashscope_api_key"] = api_key
    if backend:
        overrides["storyboard_backend"] = backend
    if workers:
        overrides["image_workers"] = workers
    settings = config.model_copy(update=overrides)

    try:
        settings.validate_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    return settings


def build_storyboard_agent(settings: Config, dashscope=None):
    from .agents import StoryboardAgent
    from .services import AnthropicClient, DashScopeClient

    if settings.storyboard_backend == "anthropic":
        return StoryboardAgent(AnthropicClient(api_key=settings.anthropic_api_key, model=settings.anthropic_model))
    return StoryboardAgent(dashscope or DashScopeClient(settings=settings))


@app.command()
def generate(
    text: Optional[str] = typer.Option(
        None,
        "--text",
        "-t",
        help="Input text for video generation"
    ),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="Input text file path",
        dir_okay=False
    ),
    output: Path = typer.Option(
        Path("output.mp4"),
        "--output",
        "-o",
        help="Output video file path"
    ),
    work_dir: Optional[Path] = typer.Option(
        None,
        "--work-dir",
        "-w",
        help="Working directory for intermediate files (default: $AUTOVIDEO_WORK_DIR or ./output)"
    ),
    skip_images: bool = typer.Option(
        False,
        "--skip-images",
        help="Skip image generation and use images already in the work directory"
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        help="DashScope API key (default: $DASHSCOPE_API_KEY)"
    ),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        "-b",
        help="Storyboard backend: dashscope or anthropic"
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-p",
        help="Maximum concurrent image generations",
        min=1,
        max=10
    ),
    caption_style: str = typer.Option(
        "default",
        "--caption-style",
        help="Subtitle style preset (default, large, minimal)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Generate a narrated slideshow video from text.

    Re-running with the same work directory resumes a failed run: scene images
    and narration that already exist are not generated again.
    """
    from .editor import FfmpegRenderer, get_audio_duration, get_style
    from .pipeline import RunEvents, StageOrchestrator
    from .services import DashScopeClient

    setup_logging(verbose)
    input_text = read_input(text, file)
    settings = resolve_config(api_key, backend, workers)
    work_dir = work_dir or settings.work_dir

    try:
        style = get_style(caption_style).with_font(settings.caption_font)
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    typer.echo("🎬 Starting auto-video generation...")
    typer.echo(f"   Input text length: {len(input_text)} characters")
    typer.echo(f"   Work directory: {work_dir}")

    dashscope = DashScopeClient(settings=settings, max_input_chars=settings.max_chunk_chars)
    events = RunEvents()
    orchestrator = StageOrchestrator(
        decomposer=build_storyboard_agent(settings, dashscope),
        image_service=dashscope,
        speech_service=dashscope,
        renderer=FfmpegRenderer(
            binary=settings.ffmpeg_binary,
            frame_rate=settings.frame_rate,
            caption_style=style,
        ),
        settings=settings.pipeline_settings(),
        events=events,
    )

    try:
        summary = orchestrator.run(input_text, work_dir, output, images_ready=skip_images)
    except AutoVideoError as e:
        typer.echo(f"❌ Video generation failed: {e}")
        raise typer.Exit(1)

    typer.echo(f"\n✅ Video saved: {summary.output_path}")
    typer.echo(f"   Run: {summary.run_id}")
    typer.echo(f"   Scenes: {summary.scene_count}")
    typer.echo(f"   Images generated: {len(summary.images_generated)}, reused: {len(summary.images_reused)}")
    if summary.narration_reused:
        typer.echo("   Narration: reused existing audio")
    else:
        typer.echo(f"   Narration: {summary.narration_chunks} chunk(s)")
    typer.echo(f"   Video timeline: {summary.video_timeline:.1f}s")

    try:
        duration = get_audio_duration(Path(summary.narration_path))
    except FileNotFoundError:
        duration = None
    if duration is not None:
        typer.echo(f"   Narration length: {duration:.1f}s (video trimmed to the shorter)")


@app.command()
def storyboard(
    text: Optional[str] = typer.Option(
        None,
        "--text",
        "-t",
        help="Input text to decompose"
    ),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="Input text file path",
        dir_okay=False
    ),
    output: Path = typer.Option(
        Path("storyboard.yaml"),
        "--output",
        "-o",
        help="Output storyboard YAML file"
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        help="DashScope API key (default: $DASHSCOPE_API_KEY)"
    ),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        "-b",
        help="Storyboard backend: dashscope or anthropic"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Decompose text into scenes without generating any assets."""
    from .models import SceneStore

    setup_logging(verbose)
    input_text = read_input(text, file)
    settings = resolve_config(api_key, backend, None)

    typer.echo(f"🎬 Decomposing {len(input_text)} characters of text")
    try:
        drafts = build_storyboard_agent(settings).decompose(input_text)
    except AutoVideoError as e:
        typer.echo(f"❌ Error generating scenes: {e}")
        raise typer.Exit(1)

    store = SceneStore.from_drafts(drafts)
    output.parent.mkdir(parents=True, exist_ok=True)
    store.to_yaml(output)
    typer.echo(f"\n✅ Storyboard saved: {output}")

    typer.echo(f"\n📋 Summary:")
    typer.echo(f"   Scenes: {len(store)}")
    typer.echo(f"   Total duration: {store.total_duration:.1f}s")
    for scene in store:
        preview = scene.subtitle[:60] + "..." if len(scene.subtitle) > 60 else scene.subtitle
        typer.echo(f"   • scene {scene.index}: {scene.duration}s  {preview}")


@app.command()
def status(
    script: Path = typer.Option(
        Path("storyboard.yaml"),
        "--script",
        "-s",
        help="Path to storyboard YAML file",
        exists=False,
        file_okay=True,
        dir_okay=False
    ),
    work_dir: Optional[Path] = typer.Option(
        None,
        "--work-dir",
        "-w",
        help="Working directory to inspect"
    ),
) -> None:
    """Show which scene assets already exist in a work directory."""
    from .models import SceneStore

    if not script.exists():
        typer.echo(f"❌ No storyboard found at {script}")
        typer.echo("   Run 'auto-video storyboard' to create one")
        raise typer.Exit(1)

    try:
        store = SceneStore.from_yaml(script)
    except (OSError, ValueError, yaml.YAMLError) as e:
        typer.echo(f"❌ Error loading storyboard: {e}")
        raise typer.Exit(1)

    settings = config.pipeline_settings()
    work_dir = work_dir or config.work_dir

    typer.echo(f"📁 Work directory: {work_dir}")
    typer.echo(f"   Scenes: {len(store)}")
    typer.echo(f"   Total duration: {store.total_duration:.1f}s")

    ready = 0
    typer.echo("\n🖼️  Scene images:")
    for scene in store:
        image = settings.image_path(work_dir, scene.index)
        exists = image.is_file()
        ready += exists
        status_icon = "✅" if exists else "⏳"
        typer.echo(f"   {status_icon} scene {scene.index}: {image.name}")

    audio = settings.audio_path(work_dir)
    audio_icon = "✅" if audio.is_file() else "⏳"
    typer.echo(f"\n🔊 Narration: {audio_icon} {audio.name}")
    typer.echo(f"\n   {ready}/{len(store)} images ready")


if __name__ == "__main__":
    app()
