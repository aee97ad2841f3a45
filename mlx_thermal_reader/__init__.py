"""
MLXThermalReader - Python library for converting MLX90640 thermal sensor data

Extracts the calibration constants from the sensor EEPROM image and converts
raw subpage frames into object temperatures, optionally propagating the
uncertainty of the emissivity and of the ADC quantization as Monte Carlo
ensembles.

Main usage:
    import mlx_thermal_reader

    frame = mlx_thermal_reader.mlx_load("EEPROM-calibration-data.csv", "raw-frame-data.csv")
    print(f"Pixel 400: {frame[400]}")
    print(f"Average temperature: {frame.get_average_temperature():.2f}°C")
"""

__version__ = "0.1.0"
__author__ = "Lorenzo Ghidini"
__email__ = "lorigh46@gmail.com"

from .compensation import compensate, get_ta, get_vdd
from .errors import IncompleteFrameError, MalformedCalibrationError, NumericDegenerateError
from .models import ParameterSet, RawFrame, TemperatureFrame
from .parsers import CalibrationParser, extract_parameters
from .reader import MLXReader, mlx_load, read_calibration_csv, read_raw_frames_csv, read_uint16_csv
from .uncertain import UncertainValue, uniform

__all__ = [
    "mlx_load",  # main entry point
    "MLXReader",
    "CalibrationParser",
    "extract_parameters",
    "compensate",
    "get_vdd",
    "get_ta",
    "read_uint16_csv",
    "read_calibration_csv",
    "read_raw_frames_csv",
    "ParameterSet",
    "RawFrame",
    "TemperatureFrame",
    "UncertainValue",
    "uniform",
    "MalformedCalibrationError",
    "IncompleteFrameError",
    "NumericDegenerateError",
]
