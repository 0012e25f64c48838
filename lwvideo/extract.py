"""Frame extraction with ffmpeg and save-directory preparation."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import structlog

from .config import META_FILE_NAME

logger = structlog.get_logger(__name__)

FFMPEG = "ffmpeg"
FRAME_PATTERN = "%05d.png"


class ExtractError(RuntimeError):
    """Raised when ffmpeg is unavailable or fails."""


class PipelineError(RuntimeError):
    """Raised when a build precondition does not hold."""


def ffmpeg_command(
    video: Path, frames_dir: Path, width: int, height: int, framerate: int
) -> list[str]:
    return [
        FFMPEG,
        "-i",
        str(video),
        "-vf",
        f"fps={framerate},scale={width}:{height}",
        str(frames_dir / FRAME_PATTERN),
    ]


def extract_frames(
    video: Path | str,
    frames_dir: Path | str,
    width: int,
    height: int,
    framerate: int,
) -> list[Path]:
    """Sample ``video`` into numbered PNGs in a fresh ``frames_dir``.

    Returns:
        Sorted list of extracted frame paths.

    Raises:
        ExtractError: If ffmpeg is missing or exits with an error.
    """
    video = Path(video)
    frames_dir = Path(frames_dir)

    shutil.rmtree(frames_dir, ignore_errors=True)
    frames_dir.mkdir(parents=True)

    cmd = ffmpeg_command(video, frames_dir, width, height, framerate)
    logger.info("extract_started", video=str(video), width=width, height=height, fps=framerate)
    try:
        subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=True)
    except FileNotFoundError as exc:
        raise ExtractError("ffmpeg not found; ensure ffmpeg is installed") from exc
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.decode("utf-8", "replace").strip() if exc.stderr else ""
        raise ExtractError(f"ffmpeg exited with status {exc.returncode}: {stderr}") from exc

    frames = sorted(frames_dir.glob("*.png"))
    logger.info("frames_extracted", count=len(frames), frames_dir=str(frames_dir))
    return frames


def meta_text(title: str) -> str:
    return f"Title: {title}\nDescription:\nTags:\n"


def prepare_save(
    template_dir: Path,
    save_dir: Path,
    title: str,
    confirm: Callable[[Path], bool],
) -> Path:
    """Replace ``save_dir`` with a copy of ``template_dir`` titled ``title``.

    ``confirm`` is asked before an existing save is deleted.

    Raises:
        PipelineError: If the template is missing or replacement is declined.
    """
    if not template_dir.is_dir():
        raise PipelineError(f"Template save not found: {template_dir}")

    if save_dir.exists():
        if not confirm(save_dir):
            raise PipelineError(f"Not replacing existing save: {save_dir}")
        shutil.rmtree(save_dir)
        logger.info("save_removed", save_dir=str(save_dir))

    shutil.copytree(template_dir, save_dir)
    (save_dir / META_FILE_NAME).write_text(meta_text(title), encoding="utf-8")
    logger.info("save_replaced", template=str(template_dir), save_dir=str(save_dir))
    return save_dir
