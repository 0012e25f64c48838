"""End-to-end pipeline tests with ffmpeg stubbed out."""

import subprocess

import pytest
from conftest import fake_ffmpeg, make_save

from lwvideo.blotter import read_file, write_file
from lwvideo.config import PipelineConfig
from lwvideo.extract import ExtractError, PipelineError
from lwvideo.pipeline import run_pipeline


@pytest.fixture
def config(tmp_path):
    saves = tmp_path / "saves"
    template = saves / "bad apple"
    template.mkdir(parents=True)
    write_file(make_save(), template / "data.logicworld")
    video = tmp_path / "badapple.mp4"
    video.write_bytes(b"\x00")
    return PipelineConfig(
        input_video=video,
        width=3,
        height=2,
        framerate=5,
        saves_dir=saves,
        frames_dir=tmp_path / "frames",
    )


class TestRunPipeline:
    def test_builds_save(self, config, monkeypatch):
        monkeypatch.setattr(subprocess, "run", fake_ffmpeg(4))
        stats = run_pipeline(config, lambda p: True)

        assert config.save_dir.name == "bad apple 3x2 5fps"
        assert (stats.frames, stats.width, stats.height) == (4, 3, 2)
        save = read_file(config.data_file)
        assert len(save.components) == 3 + stats.components_added
        assert (config.save_dir / "meta.succ").read_text().startswith("Title: bad apple 3x2 5fps")
        # Template save is left alone
        assert len(read_file(config.template_dir / "data.logicworld").components) == 3

    def test_rebuild_replaces_previous_output(self, config, monkeypatch):
        monkeypatch.setattr(subprocess, "run", fake_ffmpeg(2))
        first = run_pipeline(config, lambda p: True)
        second = run_pipeline(config, lambda p: True)
        # Injection starts from the fresh template copy each time
        assert len(read_file(config.data_file).components) == 3 + second.components_added
        assert first.components_added == second.components_added

    def test_missing_video_fails_before_touching_saves(self, config, monkeypatch):
        config.input_video.unlink()
        with pytest.raises(PipelineError, match="Input video not found"):
            run_pipeline(config, lambda p: True)
        assert not config.save_dir.exists()

    def test_extract_failure_stops_pipeline(self, config, monkeypatch):
        def _fail(cmd, **kwargs):
            raise subprocess.CalledProcessError(1, cmd, b"", b"boom")

        monkeypatch.setattr(subprocess, "run", _fail)
        with pytest.raises(ExtractError):
            run_pipeline(config, lambda p: True)
        # Save was prepared but never injected
        assert len(read_file(config.data_file).components) == 3
