"""
Core data types
Shared by the geometry engine, the progress store and the batch runner
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, List
from enum import Enum
import numpy as np


class RotationMode(Enum):
    """Rotation mode, decided once when the config is loaded"""
    FIXED = "fixed"
    AUTO = "auto"


class Anchor(Enum):
    """Anchor keywords, each one controls a single axis"""
    CENTER = "center"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class ImageDimensions:
    """Pixel size of a source image"""
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Image width and height must be positive")


@dataclass(frozen=True)
class TextMetrics:
    """
    Text measurements relative to the baseline
    ascent goes up from the baseline, descent goes down
    """
    width: float
    ascent: float
    descent: float


@dataclass(frozen=True)
class RotationSpec:
    """Fixed(degrees) | Auto"""
    mode: RotationMode = RotationMode.FIXED
    degrees: float = 0.0

    @classmethod
    def fixed(cls, degrees: float) -> 'RotationSpec':
        return cls(RotationMode.FIXED, float(degrees))

    @classmethod
    def auto(cls) -> 'RotationSpec':
        return cls(RotationMode.AUTO, 0.0)

    @property
    def is_auto(self) -> bool:
        return self.mode == RotationMode.AUTO


@dataclass(frozen=True)
class WatermarkSpec:
    """
    Immutable per-run watermark configuration.
    Loaded once at process start and passed by value into the runner.
    """
    text: str
    font: str = "40px DejaVuSans"
    base_width: float = 1000.0
    color: str = "#ffffff"
    transparency: float = 0.0
    position: Tuple[str, ...] = ("center",)
    x_offset: float = 0.0
    y_offset: float = 0.0
    horizontal_padding: float = 0.0
    vertical_padding: float = 0.0
    rotation: RotationSpec = field(default_factory=RotationSpec)
    relative_font_size: bool = False
    source_directory: str = "input"
    destination_directory: str = "output"

    @property
    def padding(self) -> Tuple[float, float]:
        return (self.horizontal_padding, self.vertical_padding)

    @property
    def offsets(self) -> Tuple[float, float]:
        return (self.x_offset, self.y_offset)


@dataclass(frozen=True)
class RunOptions:
    """Shell level options that never reach the geometry engine"""
    reset_logs: bool = False
    override_files: bool = False
    files: Tuple[str, ...] = ()
    output_format: str = "JPEG"
    quality: int = 95
    extension: str = ".jpg"


@dataclass
class PlacementResult:
    """Per-image placement, owned by the runner for one file only"""
    x: float
    y: float
    font: str
    padding: Tuple[float, float]
    angle: float
    metrics: TextMetrics
    transform: np.ndarray = field(default_factory=lambda: np.eye(3))

    @property
    def anchor(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class BatchState:
    """
    Persisted unit of recovery.
    pending, in_progress, done and errored are pairwise disjoint.
    """
    batch_count: int = 0
    batch_start_time: float = 0.0
    pending: List[str] = field(default_factory=list)
    in_progress: str = ""
    done: List[str] = field(default_factory=list)
    errored: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.pending and not self.done

    def copy(self) -> 'BatchState':
        return BatchState(
            batch_count=self.batch_count,
            batch_start_time=self.batch_start_time,
            pending=list(self.pending),
            in_progress=self.in_progress,
            done=list(self.done),
            errored=list(self.errored),
        )

    def to_dict(self) -> dict:
        return {
            'batch_count': self.batch_count,
            'batch_start_time': self.batch_start_time,
            'pending': list(self.pending),
            'in_progress': self.in_progress,
            'done': list(self.done),
            'errored': list(self.errored),
        }


@dataclass
class BatchReport:
    """Summary handed back to the shell after a run"""
    batch_count: int = 0
    processed: int = 0
    elapsed: float = 0.0
    done: List[str] = field(default_factory=list)
    errored: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errored)


class WatermarkError(Exception):
    """Base class for watermarking errors"""
    pass


class ConfigMissingError(WatermarkError):
    """Config file not found"""
    pass


class ConfigInvalidError(WatermarkError):
    """Config file could not be parsed or has invalid fields"""
    pass


class CorruptStateError(WatermarkError):
    """Progress log could not be parsed as a valid batch state"""
    pass


class ProgressError(WatermarkError):
    """Illegal progress store transition"""
    pass


class EmptyQueueError(ProgressError):
    """claim_next() called with nothing pending"""
    pass


class SourceFileMissingError(WatermarkError):
    """Source image missing on disk"""
    pass


class RenderError(WatermarkError):
    """Decode, draw or encode failure for one image"""
    pass


class TransparencyOutOfRangeError(WatermarkError, ValueError):
    """Transparency outside [0, 100]"""
    pass
