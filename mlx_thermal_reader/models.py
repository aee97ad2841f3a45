"""
Data models for MLX90640 calibration, raw frames and temperature frames.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union
import numpy as np

from .errors import IncompleteFrameError, MalformedCalibrationError, NumericDegenerateError
from .memory_map import (
    CONTROL_MEAS_MODE_MASK,
    CONTROL_MEAS_MODE_SHIFT,
    CONTROL_RESOLUTION_MASK,
    CONTROL_RESOLUTION_SHIFT,
    FRAME_CONTROL,
    FRAME_HEIGHT,
    FRAME_SUBPAGE,
    FRAME_WIDTH,
    PIXEL_COUNT,
    RANGE_0_REFERENCE_DELTA,
    RAW_FRAME_WORD_COUNT,
)
from .uncertain import UncertainValue
from .utilities import pow2, to_signed


def _frozen_array(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class ParameterSet:
    """Calibration constants extracted from one sensor's EEPROM image."""

    k_vdd: int
    vdd25: int
    kv_ptat: float
    kt_ptat: float
    vptat25: int
    alpha_ptat: float
    gain_ee: int
    tgc: float
    ks_ta: float
    resolution_ee: int
    calibration_mode_ee: int
    cp_offset: np.ndarray
    cp_alpha: np.ndarray
    cp_kta: float
    cp_kv: float
    il_chess_c: np.ndarray
    ct: np.ndarray
    ks_to: np.ndarray
    offset: np.ndarray
    alpha: np.ndarray
    alpha_scale: int
    kta: np.ndarray
    kta_scale: int
    kv: np.ndarray
    kv_scale: int
    broken_pixels: Tuple[int, ...] = ()
    outlier_pixels: Tuple[int, ...] = ()

    def __post_init__(self):
        for name, dtype, size in (
            ("offset", np.int64, PIXEL_COUNT),
            ("alpha", np.int64, PIXEL_COUNT),
            ("kta", np.int64, PIXEL_COUNT),
            ("kv", np.int64, PIXEL_COUNT),
            ("cp_offset", np.int64, 2),
            ("cp_alpha", np.float64, 2),
            ("il_chess_c", np.float64, 3),
            ("ct", np.float64, 4),
            ("ks_to", np.float64, 4),
        ):
            arr = _frozen_array(getattr(self, name), dtype)
            if arr.shape != (size,):
                raise MalformedCalibrationError(
                    f"{name} must have {size} entries, got shape {arr.shape}", code=name
                )
            object.__setattr__(self, name, arr)
        if np.any(np.diff(self.ct) < 0):
            raise NumericDegenerateError(f"Range breakpoints must be non-decreasing: {self.ct.tolist()}")

    @property
    def kta_coefficients(self) -> np.ndarray:
        return self.kta / pow2(self.kta_scale)

    @property
    def kv_coefficients(self) -> np.ndarray:
        return self.kv / pow2(self.kv_scale)

    def range_corrections(self) -> np.ndarray:
        """alphaCorrR per calibration range; range 1 is the reference (unity)."""
        corr = np.empty(4)
        corr[0] = 1 / (1 + self.ks_to[0] * RANGE_0_REFERENCE_DELTA)
        corr[1] = 1
        corr[2] = 1 + self.ks_to[1] * self.ct[2]
        corr[3] = corr[2] * (1 + self.ks_to[2] * (self.ct[3] - self.ct[2]))
        return corr


@dataclass(frozen=True, eq=False)
class RawFrame:
    """One subpage capture: 768 pixel codes followed by auxiliary and header words."""

    words: np.ndarray

    def __post_init__(self):
        words = np.asarray(self.words)
        if words.ndim != 1 or words.size != RAW_FRAME_WORD_COUNT:
            raise IncompleteFrameError(
                f"Raw frame must have {RAW_FRAME_WORD_COUNT} words, got {words.size}",
                length=int(words.size),
            )
        if words.size and (words.min() < 0 or words.max() > 0xFFFF):
            raise IncompleteFrameError("Raw frame words must be unsigned 16-bit values", length=int(words.size))
        words = _frozen_array(words, np.uint16)
        object.__setattr__(self, "words", words)
        if self.subpage not in (0, 1):
            raise IncompleteFrameError(f"Subpage index must be 0 or 1, got {self.subpage}")

    @property
    def subpage(self) -> int:
        return int(self.words[FRAME_SUBPAGE])

    @property
    def control(self) -> int:
        return int(self.words[FRAME_CONTROL])

    @property
    def mode(self) -> int:
        """Measurement mode as compared with ParameterSet.calibration_mode_ee (0x80 chess, 0 interleaved)."""
        return (self.control & CONTROL_MEAS_MODE_MASK) >> CONTROL_MEAS_MODE_SHIFT

    @property
    def resolution(self) -> int:
        return (self.control & CONTROL_RESOLUTION_MASK) >> CONTROL_RESOLUTION_SHIFT

    @property
    def pixel_codes(self) -> np.ndarray:
        """Signed 16-bit ADC codes of the 768 pixels."""
        return to_signed(self.words[:PIXEL_COUNT], 16)

    def signed(self, index: int) -> int:
        return to_signed(int(self.words[index]), 16)


Temperature = Union[float, UncertainValue]


@dataclass
class TemperatureFrame:
    """
    Per-pixel object temperatures (C), row-major over 32x24.

    `values` has shape (768,) for exact results or (768, N) for ensembles of
    N samples. Pixels outside `computed` hold NaN and must not be read.
    """

    values: np.ndarray
    computed: np.ndarray
    ambient_temperature: Optional[float] = None
    supply_voltage: Optional[float] = None
    subpages: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls, ensemble_size: Optional[int] = None) -> "TemperatureFrame":
        shape = (PIXEL_COUNT,) if ensemble_size is None else (PIXEL_COUNT, ensemble_size)
        return cls(values=np.full(shape, np.nan), computed=np.zeros(PIXEL_COUNT, dtype=bool))

    @property
    def is_uncertain(self) -> bool:
        return self.values.ndim == 2

    @property
    def ensemble_size(self) -> Optional[int]:
        return self.values.shape[1] if self.is_uncertain else None

    @property
    def is_complete(self) -> bool:
        return bool(self.computed.all())

    def __len__(self):
        return PIXEL_COUNT

    def __getitem__(self, pixel: int) -> Temperature:
        if not 0 <= pixel < PIXEL_COUNT:
            raise IndexError(f"Pixel index {pixel} out of range [0, {PIXEL_COUNT - 1}]")
        if not self.computed[pixel]:
            raise IncompleteFrameError(f"Pixel {pixel} belongs to a subpage that was not processed")
        if self.is_uncertain:
            return UncertainValue(self.values[pixel])
        return float(self.values[pixel])

    def get_temperature_at_pixel(self, x: int, y: int) -> Temperature:
        """Return the temperature at column x, row y."""
        if 0 <= x < FRAME_WIDTH and 0 <= y < FRAME_HEIGHT:
            return self[y * FRAME_WIDTH + x]
        raise IndexError(f"Pixel coordinates ({x}, {y}) out of image bounds")

    def merge(self, other: "TemperatureFrame") -> "TemperatureFrame":
        """Return a new frame where the pixels computed in `other` replace ours."""
        if self.ensemble_size != other.ensemble_size:
            raise ValueError(
                f"Cannot merge frames with ensemble sizes {self.ensemble_size} and {other.ensemble_size}"
            )
        values = self.values.copy()
        values[other.computed] = other.values[other.computed]
        return TemperatureFrame(
            values=values,
            computed=self.computed | other.computed,
            ambient_temperature=other.ambient_temperature,
            supply_voltage=other.supply_voltage,
            subpages=self.subpages + other.subpages,
        )

    def expected_values(self) -> np.ndarray:
        """Mean temperature per pixel (NaN where not computed)."""
        if self.is_uncertain:
            return self.values.mean(axis=1)
        return self.values.copy()

    def uncertainty(self) -> np.ndarray:
        """Standard deviation per pixel; zeros for exact frames."""
        if self.is_uncertain:
            return self.values.std(axis=1)
        return np.where(self.computed, 0.0, np.nan)

    def to_image(self) -> np.ndarray:
        return self.expected_values().reshape(FRAME_HEIGHT, FRAME_WIDTH)

    def uncertainty_image(self) -> np.ndarray:
        return self.uncertainty().reshape(FRAME_HEIGHT, FRAME_WIDTH)

    def get_temperature_range(self) -> tuple:
        """Return the (min, max) of the expected temperatures of computed pixels."""
        data = self.expected_values()[self.computed]
        return float(np.min(data)), float(np.max(data))

    def get_average_temperature(self) -> float:
        return float(np.mean(self.expected_values()[self.computed]))
