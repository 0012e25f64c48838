"""End-to-end build: template save -> frames -> display circuit."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import structlog

from .config import PipelineConfig
from .extract import PipelineError, extract_frames, prepare_save
from .inject import InjectStats, inject_file

logger = structlog.get_logger(__name__)


def run_pipeline(config: PipelineConfig, confirm: Callable[[Path], bool]) -> InjectStats:
    """Build the save described by ``config``.

    Steps run in order and the first failure aborts the build.
    """
    if not config.input_video.is_file():
        raise PipelineError(f"Input video not found: {config.input_video}")

    logger.info("pipeline_started", save_name=config.save_name)
    prepare_save(config.template_dir, config.save_dir, config.save_name, confirm)
    extract_frames(
        config.input_video,
        config.frames_dir,
        config.width,
        config.height,
        config.framerate,
    )
    stats = inject_file(config.data_file, config.frames_dir)
    logger.info("pipeline_finished", save_dir=str(config.save_dir), frames=stats.frames)
    return stats
