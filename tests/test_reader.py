"""
Tests for mlx_thermal_reader loaders and the conversion session.
"""
import numpy as np
import pytest

from conftest import GOLDEN_PIXEL_400, GOLDEN_PIXEL_401, build_calibration_words, make_frame
from mlx_thermal_reader import (
    MLXReader,
    mlx_load,
    read_calibration_csv,
    read_raw_frames_csv,
    read_uint16_csv,
)
from mlx_thermal_reader.errors import IncompleteFrameError, MalformedCalibrationError


def test_read_uint16_csv_file_not_found():
    """read_uint16_csv raises FileNotFoundError for missing file."""
    with pytest.raises(FileNotFoundError, match="File not found"):
        read_uint16_csv("nonexistent.csv", 0, 10)


def test_read_uint16_csv_lines(tmp_path):
    path = tmp_path / "words.csv"
    path.write_text("1,2,3,4\n5,6\n")
    assert read_uint16_csv(path, 0, 3) == [1, 2, 3]
    assert read_uint16_csv(path, 1, 10) == [5, 6]
    assert read_uint16_csv(path, 2, 10) is None


def test_read_uint16_csv_rejects_large_values(tmp_path):
    path = tmp_path / "words.csv"
    path.write_text("1,70000\n")
    with pytest.raises(ValueError):
        read_uint16_csv(path, 0, 10)


def test_read_calibration_csv(ee_csv):
    assert read_calibration_csv(ee_csv) == build_calibration_words()


def test_read_calibration_csv_short(tmp_path):
    path = tmp_path / "ee.csv"
    path.write_text(",".join(["0"] * 831) + "\n")
    with pytest.raises(MalformedCalibrationError):
        read_calibration_csv(path)


def test_read_raw_frames_csv(raw_csv):
    frames = read_raw_frames_csv(raw_csv)
    assert [f.subpage for f in frames] == [0, 1, 0]


def test_read_raw_frames_stops_at_empty_line(tmp_path):
    line = ",".join(str(w) for w in make_frame(1).words)
    path = tmp_path / "raw.csv"
    path.write_text(line + "\n\n" + line + "\n")
    assert len(read_raw_frames_csv(path)) == 1


def test_read_raw_frames_short_line(tmp_path):
    path = tmp_path / "raw.csv"
    path.write_text(",".join(["1"] * 100) + "\n")
    with pytest.raises(IncompleteFrameError) as info:
        read_raw_frames_csv(path)
    assert info.value.length == 100


def test_reader_merges_subpages(calibration_words, raw_frames):
    reader = MLXReader(calibration_words, emissivity=0.95, quantization_error=False)
    frame = reader.convert(raw_frames)
    assert frame.is_complete
    assert frame.subpages == (0, 1, 0)
    assert frame[400] == pytest.approx(GOLDEN_PIXEL_400, abs=1e-6)
    assert frame[401] == pytest.approx(GOLDEN_PIXEL_401, abs=1e-6)


def test_reader_process_accumulates(calibration_words):
    reader = MLXReader(calibration_words, emissivity=0.95, quantization_error=False)
    first = reader.process(make_frame(0))
    assert first.computed.sum() == 384
    second = reader.process(make_frame(1).words)
    assert second.is_complete
    reader.reset()
    assert reader.frame is None


def test_reader_requires_subpage_zero(calibration_words):
    reader = MLXReader(calibration_words, emissivity=0.95, quantization_error=False)
    with pytest.raises(IncompleteFrameError):
        reader.convert([make_frame(1)])
    with pytest.raises(IncompleteFrameError):
        reader.convert([])


def test_reader_default_distributions(calibration_words, raw_frames):
    reader = MLXReader(calibration_words, ensemble_size=64, seed=3)
    frame = reader.convert(raw_frames, pixels=[400, 401])
    assert frame.ensemble_size == 64
    assert 0.93 <= reader.emissivity.support()[0] <= reader.emissivity.support()[1] < 0.97
    assert frame[400].mean() == pytest.approx(GOLDEN_PIXEL_400, abs=0.5)


def test_reader_seed_is_reproducible(calibration_words, raw_frames):
    a = MLXReader(calibration_words, ensemble_size=32, seed=9).convert(raw_frames, pixels=[400])
    b = MLXReader(calibration_words, ensemble_size=32, seed=9).convert(raw_frames, pixels=[400])
    np.testing.assert_array_equal(a[400].samples, b[400].samples)


def test_mlx_load(ee_csv, raw_csv):
    frame = mlx_load(ee_csv, raw_csv, emissivity=0.95, quantization_error=False)
    assert frame.is_complete
    assert frame[400] == pytest.approx(GOLDEN_PIXEL_400, abs=1e-6)
    low, high = frame.get_temperature_range()
    assert 40 < low < high < 130
