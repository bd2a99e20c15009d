from pathlib import Path

import pytest

from autovideo.config import Config
from autovideo.errors import (
    AssemblyError,
    DecompositionError,
    ImageGenerationError,
    InvalidResponse,
    NarrationError,
)
from autovideo.models import PipelineStage, SceneDraft
from autovideo.services import DashScopeClient

from conftest import (
    AsyncFakeSpeechService,
    DummyResponse,
    FakeImageService,
    FakeSession,
    FakeSpeechService,
    RecordingRenderer,
)


def scenes(*subtitles, duration=2.0):
    return [
        SceneDraft(description=f"picture {i}", subtitle=subtitle, duration=duration)
        for i, subtitle in enumerate(subtitles)
    ]


def test_short_story_runs_every_stage(tmp_path, make_orchestrator, two_scenes, sleeper):
    orchestrator, parts = make_orchestrator(two_scenes)
    output = tmp_path / "final.mp4"

    summary = orchestrator.run("Scene one. Scene two.", tmp_path / "work", output)

    assert parts["decomposer"].calls == ["Scene one. Scene two."]
    assert parts["images"].submitted == ["A lighthouse at dawn", "A ship leaving port"]
    assert parts["speech"].texts == ["Scene one.。Scene two."]
    assert sleeper.calls == [5.0] * 4

    renderer = parts["renderer"]
    assert [call[3] for call in renderer.ops("render_still")] == [3.0, 4.0]
    assert [call[2] for call in renderer.ops("render_still")] == ["Scene one.", "Scene two."]
    assert len(renderer.ops("mux")) == 1
    assert renderer.ops("concat_audio") == []

    assert summary.video_timeline == pytest.approx(7.0)
    assert summary.images_generated == [0, 1]
    assert summary.narration_chunks == 1
    assert summary.stage == PipelineStage.DONE
    assert summary.run_id == "test-run"
    assert orchestrator.stage == PipelineStage.DONE

    work = tmp_path / "work"
    assert (work / "scene_0.png").read_bytes() == b"PNG:https://img.example/img-0.png"
    assert (work / "audio.wav").read_bytes() == b"RIFF:https://audio.example/0.wav"
    assert output.exists()
    assert not list(work.glob("segment_*.mp4"))
    assert not (work / "merged.mp4").exists()


def test_long_narration_is_chunked_and_joined(tmp_path, make_orchestrator):
    drafts = scenes("a" * 200, "b" * 199, "c" * 199)
    orchestrator, parts = make_orchestrator(drafts)
    work = tmp_path / "work"

    summary = orchestrator.run("long text", work, tmp_path / "final.mp4")

    texts = parts["speech"].texts
    assert [len(t) for t in texts] == [250, 250, 100]
    assert "".join(texts) == "a" * 200 + "。" + "b" * 199 + "。" + "c" * 199

    joins = parts["renderer"].ops("concat_audio")
    assert len(joins) == 1
    assert [p.name for p in joins[0][1]] == ["audio.part0.wav", "audio.part1.wav", "audio.part2.wav"]

    assert summary.narration_chunks == 3
    assert (work / "audio.wav").exists()
    assert not list(work.glob("audio.part*.wav"))
    assert not (work / "audio.partial.wav").exists()


def test_failed_image_task_aborts_before_later_scenes(tmp_path, make_orchestrator):
    drafts = scenes("one", "two", "three")
    images = FakeImageService({"picture 1": ["RUNNING", "FAILED"]})
    orchestrator, parts = make_orchestrator(drafts, images=images)
    work = tmp_path / "work"

    with pytest.raises(ImageGenerationError) as excinfo:
        orchestrator.run("text", work, tmp_path / "final.mp4")

    assert excinfo.value.scene_index == 1
    assert "scene 1" in str(excinfo.value)
    assert images.submitted == ["picture 0", "picture 1"]
    assert (work / "scene_0.png").exists()
    assert not (work / "scene_1.png").exists()
    assert parts["speech"].texts == []
    assert parts["renderer"].calls == []
    assert orchestrator.stage == PipelineStage.GENERATE_IMAGES

    failed = parts["events"].named("run_failed")
    assert len(failed) == 1
    assert failed[0].fields["stage"] == "generate_images"
    assert failed[0].fields["scene"] == 1


def test_rerun_after_failure_only_generates_what_is_missing(tmp_path, make_orchestrator):
    drafts = scenes("one", "two", "three")
    work = tmp_path / "work"
    failing, _ = make_orchestrator(drafts, images=FakeImageService({"picture 1": ["FAILED"]}))
    with pytest.raises(ImageGenerationError):
        failing.run("text", work, tmp_path / "final.mp4")

    retry, parts = make_orchestrator(drafts)
    summary = retry.run("text", work, tmp_path / "final.mp4")

    assert parts["images"].submitted == ["picture 1", "picture 2"]
    assert summary.images_reused == [0]
    assert summary.images_generated == [1, 2]


def test_second_run_reuses_every_asset(tmp_path, make_orchestrator, two_scenes):
    orchestrator, parts = make_orchestrator(two_scenes)
    work = tmp_path / "work"
    orchestrator.run("text", work, tmp_path / "first.mp4")
    audio_before = (work / "audio.wav").read_bytes()

    summary = orchestrator.run("text", work, tmp_path / "second.mp4")

    assert len(parts["images"].submitted) == 2
    assert len(parts["speech"].texts) == 1
    assert summary.images_generated == []
    assert summary.images_reused == [0, 1]
    assert summary.narration_reused is True
    assert (work / "audio.wav").read_bytes() == audio_before
    assert len(parts["renderer"].ops("mux")) == 2


def test_existing_images_mode_skips_scenes_without_a_picture(tmp_path, make_orchestrator, two_scenes):
    work = tmp_path / "work"
    work.mkdir()
    (work / "scene_0.png").write_bytes(b"png")
    orchestrator, parts = make_orchestrator(two_scenes)

    summary = orchestrator.run("text", work, tmp_path / "final.mp4", images_ready=True)

    assert parts["images"].submitted == []
    assert [call[1].name for call in parts["renderer"].ops("render_still")] == ["scene_0.png"]
    assert parts["speech"].texts == ["Scene one.。Scene two."]
    assert summary.video_timeline == pytest.approx(3.0)
    assert summary.images_reused == [0]


def test_existing_images_mode_with_no_images_fails_assembly(tmp_path, make_orchestrator, two_scenes):
    orchestrator, _ = make_orchestrator(two_scenes)

    with pytest.raises(AssemblyError):
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4", images_ready=True)


def test_decomposition_failure(tmp_path, make_orchestrator):
    orchestrator, parts = make_orchestrator([])
    parts["decomposer"].error = InvalidResponse("reply was not JSON")

    with pytest.raises(DecompositionError) as excinfo:
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")

    assert "reply was not JSON" in str(excinfo.value)
    assert parts["images"].submitted == []


def test_decomposition_without_scenes(tmp_path, make_orchestrator):
    orchestrator, _ = make_orchestrator([])

    with pytest.raises(DecompositionError):
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")


def test_speech_failure_leaves_no_narration(tmp_path, make_orchestrator):
    drafts = scenes("a" * 200, "b" * 199, "c" * 199)
    speech = FakeSpeechService(fail_on=1)
    orchestrator, parts = make_orchestrator(drafts, speech=speech)
    work = tmp_path / "work"

    with pytest.raises(NarrationError):
        orchestrator.run("text", work, tmp_path / "final.mp4")

    assert not (work / "audio.wav").exists()
    assert parts["renderer"].ops("concat_audio") == []


def test_empty_narration_script(tmp_path, make_orchestrator):
    orchestrator, _ = make_orchestrator(scenes(""))

    with pytest.raises(NarrationError):
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")


def test_audio_join_failure_is_reported_with_renderer_output(tmp_path, make_orchestrator):
    drafts = scenes("a" * 200, "b" * 199, "c" * 199)
    orchestrator, _ = make_orchestrator(drafts, renderer=RecordingRenderer(fail_on="concat_audio"))

    with pytest.raises(AssemblyError) as excinfo:
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")

    assert excinfo.value.stage == PipelineStage.GENERATE_NARRATION
    assert "boom: invalid data" in str(excinfo.value)
    assert not (tmp_path / "work" / "audio.wav").exists()


@pytest.mark.parametrize("op, scene_index", [("render_still", 0), ("concat_video", None), ("mux", None)])
def test_renderer_failure_during_assembly(tmp_path, make_orchestrator, two_scenes, op, scene_index):
    orchestrator, parts = make_orchestrator(two_scenes, renderer=RecordingRenderer(fail_on=op))

    with pytest.raises(AssemblyError) as excinfo:
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")

    assert excinfo.value.stage == PipelineStage.ASSEMBLE
    assert excinfo.value.scene_index == scene_index
    assert "boom: invalid data" in str(excinfo.value)
    assert parts["events"].named("run_failed")[0].fields["stage"] == "assemble"


def test_parallel_image_workers(tmp_path, make_orchestrator):
    drafts = scenes("one", "two", "three", "four", "five")
    orchestrator, parts = make_orchestrator(drafts, image_workers=3)

    summary = orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")

    assert sorted(parts["images"].submitted) == [f"picture {i}" for i in range(5)]
    assert summary.images_generated == [0, 1, 2, 3, 4]
    stills = [call[1].name for call in parts["renderer"].ops("render_still")]
    assert stills == [f"scene_{i}.png" for i in range(5)]


def test_speech_cap_follows_the_service(tmp_path, make_orchestrator):
    drafts = scenes("x" * 120)
    orchestrator, parts = make_orchestrator(drafts, speech=FakeSpeechService(max_input_chars=50))

    summary = orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")

    assert [len(t) for t in parts["speech"].texts] == [50, 50, 20]
    assert summary.narration_chunks == 3


def test_malformed_image_service_reply_names_the_scene(tmp_path, make_orchestrator, two_scenes):
    settings = Config(dashscope_api_key="sk-test")
    dashscope = DashScopeClient(settings=settings, session=FakeSession([DummyResponse([])]))
    orchestrator, parts = make_orchestrator(two_scenes, images=dashscope)

    with pytest.raises(ImageGenerationError) as excinfo:
        orchestrator.run("text", tmp_path / "work", tmp_path / "final.mp4")

    assert excinfo.value.scene_index == 0
    assert isinstance(excinfo.value.__cause__, InvalidResponse)
    failed = parts["events"].named("run_failed")
    assert [(e.fields["stage"], e.fields["scene"]) for e in failed] == [("generate_images", 0)]


def test_unusable_work_directory_is_a_stage_failure(tmp_path, make_orchestrator, two_scenes):
    blocker = tmp_path / "taken"
    blocker.write_text("not a directory")
    orchestrator, parts = make_orchestrator(two_scenes)

    with pytest.raises(DecompositionError, match="work directory"):
        orchestrator.run("text", blocker / "work", tmp_path / "final.mp4")

    assert parts["decomposer"].calls == []
    assert parts["events"].named("run_failed")[0].fields["stage"] == "decompose"


def test_asynchronous_speech_service_is_polled(tmp_path, make_orchestrator, two_scenes, sleeper):
    speech = AsyncFakeSpeechService()
    orchestrator, _ = make_orchestrator(two_scenes, speech=speech)
    work = tmp_path / "work"

    summary = orchestrator.run("text", work, tmp_path / "final.mp4")

    assert speech.polls == ["tts-0"]
    assert sleeper.calls == [5.0, 5.0, 5.0, 5.0, 1.0]
    assert (work / "audio.wav").read_bytes() == b"RIFF:https://audio.example/tts-0.wav"
    assert summary.narration_chunks == 1


def test_parallel_failure_names_the_failing_scene(tmp_path, make_orchestrator):
    drafts = scenes("one", "two", "three", "four")
    images = FakeImageService({"picture 2": ["RUNNING", "FAILED"]})
    orchestrator, parts = make_orchestrator(drafts, images=images, image_workers=3)
    work = tmp_path / "work"

    with pytest.raises(ImageGenerationError) as excinfo:
        orchestrator.run("text", work, tmp_path / "final.mp4")

    assert excinfo.value.scene_index == 2
    assert not (work / "scene_2.png").exists()
    assert parts["speech"].texts == []
    assert parts["renderer"].calls == []
    assert parts["events"].named("run_failed")[0].fields["scene"] == 2
