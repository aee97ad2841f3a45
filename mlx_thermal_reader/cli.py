"""
Command-line interface for MLXThermalReader.
"""

import argparse
import json
import logging
import sys
import time

from .memory_map import (
    DEFAULT_EE_DATA_PATH,
    DEFAULT_ENSEMBLE_SIZE,
    DEFAULT_PIXEL,
    DEFAULT_RAW_DATA_PATH,
    FRAME_HEIGHT,
    FRAME_WIDTH,
    PIXEL_COUNT,
)
from .reader import MLXReader, read_calibration_csv, read_raw_frames_csv
from .uncertain import UncertainValue, expected
from .utilities import UnitConversion

JSON_DESCRIPTION = "MLX90640 Conversion Values."
UNIT_NAMES = {"C": "Celsius", "K": "Kelvin", "F": "Fahrenheit"}


def pixel_index(value):
    """argparse type for a pixel index in [0, 767]."""
    try:
        pixel = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid pixel index: {value!r}")
    if not 0 <= pixel < PIXEL_COUNT:
        raise argparse.ArgumentTypeError(f"pixel index must be in [0, {PIXEL_COUNT - 1}], got {pixel}")
    return pixel


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(
        prog="mlx-thermal-reader",
        description="Convert MLX90640 raw frames to temperatures using the sensor EEPROM calibration"
    )
    parser.add_argument(
        "raw_path",
        nargs="?",
        default=DEFAULT_RAW_DATA_PATH,
        help=f"CSV file with one raw frame per line (default: {DEFAULT_RAW_DATA_PATH})"
    )
    parser.add_argument(
        "-c", "--calibration",
        default=DEFAULT_EE_DATA_PATH,
        help=f"CSV file with the EEPROM calibration words (default: {DEFAULT_EE_DATA_PATH})"
    )
    parser.add_argument(
        "-e", "--emissivity",
        type=float,
        help="Exact object emissivity (default: Uniform(0.93, 0.97))"
    )
    parser.add_argument(
        "-q", "--no-quantization-error",
        dest="quantization_error",
        action="store_false",
        help="Do not model the ADC quantization error"
    )
    parser.add_argument(
        "-p", "--pixel",
        type=pixel_index,
        default=DEFAULT_PIXEL,
        help=f"Pixel index to print (default: {DEFAULT_PIXEL})"
    )
    parser.add_argument(
        "-a", "--all",
        dest="print_all",
        action="store_true",
        help="Print the temperatures of all pixels"
    )
    parser.add_argument(
        "-j", "--json",
        action="store_true",
        help="Print the results as JSON"
    )
    parser.add_argument(
        "-u", "--unit",
        choices=sorted(UNIT_NAMES),
        default="C",
        help="Temperature unit of the printed values (default: C)"
    )
    parser.add_argument(
        "-t", "--timing",
        action="store_true",
        help="Print the CPU time used"
    )
    parser.add_argument(
        "-r", "--iterations",
        type=positive_int,
        default=1,
        help="Repeat extraction and conversion this many times (benchmarking)"
    )
    parser.add_argument(
        "-n", "--samples",
        type=positive_int,
        default=DEFAULT_ENSEMBLE_SIZE,
        help=f"Monte Carlo ensemble size (default: {DEFAULT_ENSEMBLE_SIZE})"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed of the random generator"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        words = read_calibration_csv(args.calibration)
        frames = read_raw_frames_csv(args.raw_path)

        start = time.process_time()
        for _ in range(args.iterations):
            reader = MLXReader(
                words,
                emissivity=args.emissivity,
                quantization_error=args.quantization_error,
                ensemble_size=args.samples,
                seed=args.seed,
            )
            frame = reader.convert(frames)
        cpu_time = time.process_time() - start

        if args.json:
            print_json(frame, args)
        else:
            print(f"Converting raw data to temperature using emissivity = {format_value(reader.emissivity)}")
            if args.print_all:
                print_grid(frame, args.unit)
            else:
                value = UnitConversion.convert(frame[args.pixel], args.unit)
                print(f"Temperature of pixel {args.pixel}: {format_value(value)} {UNIT_NAMES[args.unit]}.\n")
            if args.timing:
                print(f"CPU time used: {cpu_time:f} seconds")

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def format_value(value):
    """Format an exact value, or an ensemble as mean and standard deviation."""
    if isinstance(value, UncertainValue):
        return f"{expected(value):f} (std {value.std():f}, {value.ensemble_size} samples)"
    return f"{value:f}"


def print_grid(frame, unit="C"):
    """Print the 24x32 expected temperature image, one sensor row per line."""
    image = UnitConversion.convert(frame.to_image(), unit)
    for h in range(FRAME_HEIGHT):
        print(" ".join(f"{image[h, w]:f}" for w in range(FRAME_WIDTH)))


def print_json(frame, args):
    """Print the results as a JSON document with description and variables."""
    unit = args.unit
    if args.print_all:
        variable = {
            "variableSymbol": "temperatures",
            "variableDescription": "Temperatures (calibrated)",
            "unit": unit,
            "values": _json_floats(UnitConversion.convert(frame.expected_values(), unit)),
        }
        if frame.is_uncertain:
            variable["standardDeviations"] = _json_floats(
                UnitConversion.convert(frame.uncertainty(), unit, diff=True)
            )
    else:
        value = UnitConversion.convert(frame[args.pixel], unit)
        variable = {
            "variableSymbol": "temperature",
            "variableDescription": "Temperature (calibrated)",
            "unit": unit,
            "values": _json_floats([expected(value)]),
        }
        if isinstance(value, UncertainValue):
            variable["standardDeviations"] = [value.std()]
    print(json.dumps({"description": JSON_DESCRIPTION, "variables": [variable]}))


def _json_floats(values):
    # NaN is not valid JSON; uncomputed pixels become null
    return [None if v != v else float(v) for v in values]


if __name__ == "__main__":
    main()
