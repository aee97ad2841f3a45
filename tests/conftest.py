"""
Shared fixtures: a synthetic but physically plausible MLX90640 calibration
image and raw frames.

The same values are stored in data/EEPROM-calibration-data.csv and
data/raw-frame-data.csv (frames for subpages 0, 1, 0).
"""
from pathlib import Path

import numpy as np
import pytest

from mlx_thermal_reader.models import RawFrame
from mlx_thermal_reader.parsers import extract_parameters

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

# EEPROM word address -> value
CALIBRATION_WORDS = {
    0x0A: 0x0000,   # chess calibration mode, device select clear
    0x10: 0x4210,   # alphaPTAT 4, occ scales row 2 / column 1 / remnant 0
    0x11: 65476,    # offset average -60
    0x20: 0x4000,   # alpha scale 4, acc scales 0
    0x21: 2168,     # alpha reference
    0x30: 6383,     # gain
    0x31: 12273,    # vPTAT25
    0x32: 24914,    # KvPTAT 24, KtPTAT 338
    0x33: 0x9D68,   # kVdd -99, vdd25 0x68
    0x34: 0x2222,   # Kv averages 2
    0x35: 10497,    # ilChess raw c0=1, c1=4, c2=5
    0x36: 0x2828,   # Kta averages
    0x37: 0x2A26,
    0x38: 9040,     # resolution 2, kvScale 3, ktaScale1 5, ktaScale2 0
    0x39: 9,        # cpAlpha
    0x3A: 1973,     # cpOffset -75, delta 1
    0x3B: 1064,     # cpKv 4, cpKta 40
    0x3C: 0xF020,   # KsTa -16, tgc 32
    0x3D: 0x9797,   # KsTo0, KsTo1
    0x3E: 0xCCB1,   # KsTo2, KsTo3
    0x3F: 0x1F89,   # step 10, ct3 nibble 15, ct2 nibble 8, KsTo scale 9
}
OCC_ROW_WORD = 0x1F01      # nibbles 1, 0, -1, 1
OCC_COLUMN_WORD = 0x0E02   # nibbles 2, 0, -2, 0
ACC_ROW_WORD = 0x0001      # nibbles 1, 0, 0, 0

FRAME_HEADER = {
    768: 19442,    # VBE
    776: 65461,    # compensation pixel, subpage 0 (-75)
    778: 6400,     # gain
    800: 1711,     # PTAT
    808: 65460,    # compensation pixel, subpage 1 (-76)
    810: 52421,    # VDD pixel (-13115)
}
CHESS_CONTROL = 0x1901
INTERLEAVED_CONTROL = 0x0901

# Exact temperatures (C) at emissivity 0.95 and reflected temperature ta - 8
GOLDEN_PIXEL_400_FIRST_FRAME = 51.569303266067
GOLDEN_PIXEL_400 = 51.705393953222
GOLDEN_PIXEL_401 = 52.216653497669
GOLDEN_PIXEL_165 = 125.957278890014
GOLDEN_PIXEL_400_INTERLEAVED = 51.526632524884
GOLDEN_TA = 39.181653541058
GOLDEN_VDD = 3.318623737374


def pixel_word(p):
    offset = ((p % 5) - 2) & 0x3F
    alpha = ((p % 7) - 3) & 0x3F
    kta = (1 + p % 2) & 0x7
    return (offset << 10) | (alpha << 4) | (kta << 1)


def build_calibration_words():
    words = [0] * 832
    for address, value in CALIBRATION_WORDS.items():
        words[address] = value
    for address in range(0x12, 0x18):
        words[address] = OCC_ROW_WORD
    for address in range(0x18, 0x20):
        words[address] = OCC_COLUMN_WORD
    for address in range(0x22, 0x28):
        words[address] = ACC_ROW_WORD
    for p in range(768):
        words[0x40 + p] = pixel_word(p)
    return words


def pixel_code(p, code_offset=0):
    row, column = divmod(p, 32)
    code = 40 + 4 * column + row
    if 5 <= row <= 6 and 5 <= column <= 6:
        code += 1500
    return code + code_offset


def build_frame_words(subpage, control=CHESS_CONTROL, code_offset=0):
    words = [pixel_code(p, code_offset) for p in range(768)] + [0] * 66
    for index, value in FRAME_HEADER.items():
        words[index] = value
    words[832] = control
    words[833] = subpage
    return words


def make_frame(subpage=0, control=CHESS_CONTROL, code_offset=0, overrides=None):
    words = build_frame_words(subpage, control, code_offset)
    for index, value in (overrides or {}).items():
        words[index] = value
    return RawFrame(np.array(words))


@pytest.fixture
def calibration_words():
    return build_calibration_words()


@pytest.fixture(scope="session")
def params():
    return extract_parameters(build_calibration_words())


@pytest.fixture
def raw_frames():
    """Subpage 0, subpage 1, then subpage 0 again with codes raised by 2."""
    return [make_frame(0), make_frame(1), make_frame(0, code_offset=2)]


@pytest.fixture
def ee_csv():
    return DATA_DIR / "EEPROM-calibration-data.csv"


@pytest.fixture
def raw_csv():
    return DATA_DIR / "raw-frame-data.csv"
