"""
Tests for the mlx-thermal-reader command line.
"""
import json

import pytest

from mlx_thermal_reader.cli import main


def test_exact_pixel_output(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-e", "0.95", "-q"])
    out = capsys.readouterr().out
    assert "Converting raw data to temperature using emissivity = 0.950000" in out
    assert "Temperature of pixel 400: 51.705394 Celsius." in out


def test_distribution_output(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-n", "50", "--seed", "1", "-p", "401", "-t"])
    out = capsys.readouterr().out
    assert "Temperature of pixel 401:" in out
    assert "50 samples" in out
    assert "CPU time used:" in out


def test_all_pixels_grid(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-e", "0.95", "-q", "-a"])
    lines = capsys.readouterr().out.strip().splitlines()
    grid = lines[1:]
    assert len(grid) == 24
    assert all(len(row.split()) == 32 for row in grid)


def test_json_output(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-e", "0.95", "-q", "-j"])
    document = json.loads(capsys.readouterr().out)
    assert document["description"] == "MLX90640 Conversion Values."
    variable = document["variables"][0]
    assert variable["variableSymbol"] == "temperature"
    assert variable["values"][0] == pytest.approx(51.705394, abs=1e-5)


def test_json_all_pixels_with_distribution(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-n", "20", "--seed", "4", "-a", "-j", "-r", "2"])
    variable = json.loads(capsys.readouterr().out)["variables"][0]
    assert variable["variableSymbol"] == "temperatures"
    assert len(variable["values"]) == 768
    assert len(variable["standardDeviations"]) == 768


@pytest.mark.parametrize("pixel", ["768", "-1", "abc"])
def test_pixel_out_of_range_is_usage_error(pixel, ee_csv, raw_csv):
    with pytest.raises(SystemExit) as info:
        main([str(raw_csv), "-c", str(ee_csv), "-p", pixel])
    assert info.value.code == 2


def test_missing_file_reports_error(capsys, tmp_path, raw_csv):
    with pytest.raises(SystemExit) as info:
        main([str(raw_csv), "-c", str(tmp_path / "missing.csv")])
    assert info.value.code == 1
    assert "Error: File not found" in capsys.readouterr().err


def test_unit_conversion_output(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-e", "0.95", "-q", "-u", "K"])
    assert "Temperature of pixel 400: 324.855394 Kelvin." in capsys.readouterr().out


def test_unit_conversion_of_spread(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-n", "30", "--seed", "2", "-j"])
    celsius = json.loads(capsys.readouterr().out)["variables"][0]
    main([str(raw_csv), "-c", str(ee_csv), "-n", "30", "--seed", "2", "-j", "-u", "F"])
    fahrenheit = json.loads(capsys.readouterr().out)["variables"][0]
    assert fahrenheit["values"][0] == pytest.approx(celsius["values"][0] * 1.8 + 32)
    assert fahrenheit["standardDeviations"][0] == pytest.approx(celsius["standardDeviations"][0] * 1.8)


def test_text_and_json_report_the_same_expected_value(capsys, ee_csv, raw_csv):
    main([str(raw_csv), "-c", str(ee_csv), "-n", "40", "--seed", "6"])
    line = next(l for l in capsys.readouterr().out.splitlines() if l.startswith("Temperature of pixel"))
    text_mean = float(line.split(": ")[1].split(" (std")[0])
    main([str(raw_csv), "-c", str(ee_csv), "-n", "40", "--seed", "6", "-j"])
    variable = json.loads(capsys.readouterr().out)["variables"][0]
    assert variable["values"][0] == pytest.approx(text_mean, abs=1e-6)
    assert variable["standardDeviations"][0] > 0
