"""Pipeline configuration.

Defaults reproduce the classic 24x18 @ 10fps "bad apple" build. Each
field can be overridden from the environment:

  LWVIDEO_INPUT_VIDEO    - source video (default: ~/badapple.mp4)
  LWVIDEO_WIDTH          - display width in pixels (default: 24)
  LWVIDEO_HEIGHT         - display height in pixels (default: 18)
  LWVIDEO_FRAMERATE      - frames per second to sample (default: 10)
  LWVIDEO_SAVES_DIR      - Logic World saves directory
  LWVIDEO_TEMPLATE       - name of the template save to copy (default: bad apple)
  LWVIDEO_TITLE_PREFIX   - prefix of the generated save's name (default: bad apple)
  LWVIDEO_FRAMES_DIR     - scratch directory for extracted frames (default: frames)
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

ENV_PREFIX = "LWVIDEO_"
DATA_FILE_NAME = "data.logicworld"
META_FILE_NAME = "meta.succ"


def default_saves_dir() -> Path:
    return Path.home() / ".local/share/Steam/steamapps/common/Logic World/saves"


def _env_str(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    val = os.environ.get(ENV_PREFIX + name)
    if val is None:
        return default
    try:
        parsed = int(val)
    except ValueError:
        parsed = None
    if parsed is None or parsed < minimum:
        logger.warning("config_invalid_env", name=ENV_PREFIX + name, value=val, default=default)
        return default
    return parsed


class PipelineConfig(BaseModel):
    """Settings for one video-to-save build."""

    input_video: Path = Field(
        default_factory=lambda: Path.home() / "badapple.mp4",
        description="Video to sample frames from",
    )
    width: int = Field(default=24, ge=1, description="Display width in pixels")
    height: int = Field(default=18, ge=1, description="Display height in pixels")
    framerate: int = Field(default=10, ge=1, description="Frames per second to sample")
    saves_dir: Path = Field(
        default_factory=default_saves_dir,
        description="Logic World saves directory",
    )
    template_name: str = Field(
        default="bad apple",
        description="Existing save copied as the starting point",
    )
    title_prefix: str = Field(default="bad apple", description="Prefix of the generated save name")
    frames_dir: Path = Field(
        default=Path("frames"),
        description="Scratch directory for extracted frames",
    )

    @property
    def save_name(self) -> str:
        return f"{self.title_prefix} {self.width}x{self.height} {self.framerate}fps"

    @property
    def save_dir(self) -> Path:
        return self.saves_dir / self.save_name

    @property
    def template_dir(self) -> Path:
        return self.saves_dir / self.template_name

    @property
    def data_file(self) -> Path:
        return self.save_dir / DATA_FILE_NAME

    @classmethod
    def from_env(cls, **overrides) -> PipelineConfig:
        """Build a config from LWVIDEO_* variables, then apply non-None overrides."""
        defaults = cls()
        values = {
            "input_video": Path(_env_str("INPUT_VIDEO", str(defaults.input_video))),
            "width": _env_int("WIDTH", defaults.width),
            "height": _env_int("HEIGHT", defaults.height),
            "framerate": _env_int("FRAMERATE", defaults.framerate),
            "saves_dir": Path(_env_str("SAVES_DIR", str(defaults.saves_dir))),
            "template_name": _env_str("TEMPLATE", defaults.template_name),
            "title_prefix": _env_str("TITLE_PREFIX", defaults.title_prefix),
            "frames_dir": Path(_env_str("FRAMES_DIR", str(defaults.frames_dir))),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
