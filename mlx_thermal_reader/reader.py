"""Load MLX90640 calibration and raw frame CSV files and convert them to temperature frames."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from .compensation import compensate
from .errors import IncompleteFrameError, MalformedCalibrationError
from .memory_map import (
    DEFAULT_EE_DATA_PATH,
    DEFAULT_ENSEMBLE_SIZE,
    DEFAULT_RAW_DATA_PATH,
    EEPROM_WORD_COUNT,
    EMISSIVITY_BOUNDS,
    RAW_FRAME_WORD_COUNT,
)
from .models import ParameterSet, RawFrame, TemperatureFrame
from .parsers import extract_parameters
from .uncertain import UncertainValue, uniform

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def read_uint16_csv(file_path: PathLike, line: int, max_len: int) -> Optional[List[int]]:
    """
    Read up to `max_len` comma separated unsigned 16-bit values from line `line` (0-based).

    Returns None when the file has no such line. An empty line gives an empty list.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as fh:
        for i, text in enumerate(fh):
            if i == line:
                break
        else:
            return None

    values = []
    for token in text.strip().split(",")[:max_len]:
        token = token.strip()
        if not token:
            continue
        value = int(token)
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"Value {value} on line {line} of {file_path} is not an unsigned 16-bit integer")
        values.append(value)
    return values


def read_calibration_csv(file_path: PathLike) -> List[int]:
    """Read the 832 EEPROM words from the first line of a CSV file."""
    words = read_uint16_csv(file_path, 0, EEPROM_WORD_COUNT)
    if words is None or len(words) < EEPROM_WORD_COUNT:
        count = 0 if words is None else len(words)
        raise MalformedCalibrationError(
            f"Calibration file {file_path} holds {count} words, expected {EEPROM_WORD_COUNT}", code="length"
        )
    return words


def read_raw_frames_csv(file_path: PathLike) -> List[RawFrame]:
    """Read one raw frame per line until the first missing or empty line."""
    frames = []
    line = 0
    while True:
        words = read_uint16_csv(file_path, line, RAW_FRAME_WORD_COUNT)
        if not words:
            break
        if len(words) < RAW_FRAME_WORD_COUNT:
            raise IncompleteFrameError(
                f"Line {line} of {file_path} holds {len(words)} words, expected {RAW_FRAME_WORD_COUNT}",
                length=len(words),
            )
        frames.append(RawFrame(np.array(words)))
        line += 1
    logger.debug("Read %d raw frame(s) from %s", len(frames), file_path)
    return frames


class MLXReader:
    """
    Conversion session for one sensor.

    The calibration is extracted once; every processed subpage is merged
    into the current temperature frame, later frames replacing the pixels
    of earlier ones.

    Usage example:
        reader = MLXReader(read_calibration_csv("EEPROM-calibration-data.csv"), seed=1)
        frame = reader.convert(read_raw_frames_csv("raw-frame-data.csv"))
        print(f"Pixel 400: {frame[400]}")
    """

    def __init__(
        self,
        calibration_words: Sequence[int],
        emissivity: Union[float, UncertainValue, None] = None,
        quantization_error: bool = True,
        ensemble_size: int = DEFAULT_ENSEMBLE_SIZE,
        seed: Optional[int] = None,
    ):
        self.parameters: ParameterSet = extract_parameters(calibration_words)
        self.rng = np.random.default_rng(seed)
        self.ensemble_size = ensemble_size
        if emissivity is None:
            emissivity = uniform(*EMISSIVITY_BOUNDS, size=ensemble_size, rng=self.rng)
        self.emissivity = emissivity
        self.quantization_error = quantization_error
        self.frame: Optional[TemperatureFrame] = None

    def reset(self):
        """Forget the pixels merged so far."""
        self.frame = None

    def process(self, frame: Union[RawFrame, Sequence[int]],
                pixels: Optional[Iterable[int]] = None) -> TemperatureFrame:
        """Compensate one subpage and merge it into the current frame."""
        if not isinstance(frame, RawFrame):
            frame = RawFrame(np.asarray(frame))
        result = compensate(
            frame,
            self.parameters,
            self.emissivity,
            quantization_error=self.quantization_error,
            ensemble_size=self.ensemble_size,
            rng=self.rng,
            pixels=pixels,
        )
        self.frame = result if self.frame is None else self.frame.merge(result)
        logger.debug("Merged subpage %d, %d pixel(s) computed", frame.subpage, int(self.frame.computed.sum()))
        return self.frame

    def convert(self, frames: Iterable[Union[RawFrame, Sequence[int]]],
                pixels: Optional[Iterable[int]] = None) -> TemperatureFrame:
        """Process every frame in order and return the merged temperature frame."""
        frames = [f if isinstance(f, RawFrame) else RawFrame(np.asarray(f)) for f in frames]
        if not frames:
            raise IncompleteFrameError("No raw frames to convert", length=0)
        if not any(f.subpage == 0 for f in frames):
            raise IncompleteFrameError("Raw data holds no subpage 0 frame")
        if pixels is not None:
            pixels = list(pixels)
        self.reset()
        for frame in frames:
            self.process(frame, pixels=pixels)
        return self.frame


def mlx_load(ee_path: PathLike = DEFAULT_EE_DATA_PATH,
             raw_path: PathLike = DEFAULT_RAW_DATA_PATH,
             pixels: Optional[Iterable[int]] = None,
             **options) -> TemperatureFrame:
    """
    Load the calibration and raw frame CSV files and convert them.

    Args:
        ee_path: CSV with the 832 EEPROM words on its first line
        raw_path: CSV with one 834-word raw frame per line
        pixels: optional subset of pixel indices to compute
        **options: MLXReader keyword arguments (emissivity, quantization_error,
            ensemble_size, seed)

    Returns:
        TemperatureFrame: merged temperatures of all frames, in Celsius

    Usage example:
        frame = mlx_load("EEPROM-calibration-data.csv", "raw-frame-data.csv", emissivity=0.95)
        print(f"Average temperature: {frame.get_average_temperature():.2f}°C")
    """
    reader = MLXReader(read_calibration_csv(ee_path), **options)
    return reader.convert(read_raw_frames_csv(raw_path), pixels=pixels)
