"""
Memory map of the MLX90640 calibration EEPROM and raw frame layout.

The EEPROM image is 832 16-bit words (device addresses 0x2400-0x273F). Each
calibration constant lives in a fixed bit field of one word. Fields are
declared here as (word address, lsb, width) so the extractor reads them by
name instead of by shifting and masking inline.

Indexed fields (row/column tables and per-pixel words) are declared as
(first index, count, locator) where the locator maps an index to a field
tuple, in the same spirit as the single-word fields.
"""
from typing import Callable, Dict, Tuple

# -----------------------------------------------------------------------------
# Sensor geometry
# -----------------------------------------------------------------------------
FRAME_WIDTH = 32
FRAME_HEIGHT = 24
PIXEL_COUNT = FRAME_WIDTH * FRAME_HEIGHT

EEPROM_WORD_COUNT = 832
RAW_FRAME_WORD_COUNT = 834

# -----------------------------------------------------------------------------
# Raw frame layout (index into the 834-word frame buffer)
# -----------------------------------------------------------------------------
FRAME_VBE = 768
FRAME_CP_SUBPAGE_0 = 776
FRAME_GAIN = 778
FRAME_PTAT = 800
FRAME_CP_SUBPAGE_1 = 808
FRAME_VDD_PIX = 810
FRAME_CONTROL = 832
FRAME_SUBPAGE = 833

# Control register 1 bits
CONTROL_MEAS_MODE_MASK = 0x1000
CONTROL_MEAS_MODE_SHIFT = 5
CONTROL_RESOLUTION_MASK = 0x0C00
CONTROL_RESOLUTION_SHIFT = 10
CHESS_MODE = CONTROL_MEAS_MODE_MASK >> CONTROL_MEAS_MODE_SHIFT
INTERLEAVED_MODE = 0

# -----------------------------------------------------------------------------
# Physical constants and defaults
# -----------------------------------------------------------------------------
KELVIN_OFFSET = 273.15
SCALE_ALPHA = 0.000001
REFERENCE_TA = 25.0
REFERENCE_VDD = 3.3
PTAT_SCALE_BITS = 18
RANGE_0_REFERENCE_DELTA = 40

# Reflected temperature defaults to ambient minus this shift (C)
TA_SHIFT = 8

EMISSIVITY_BOUNDS = (0.93, 0.97)
DEFAULT_ENSEMBLE_SIZE = 1000
DEFAULT_PIXEL = PIXEL_COUNT // 2 + FRAME_WIDTH // 2

DEFAULT_EE_DATA_PATH = "EEPROM-calibration-data.csv"
DEFAULT_RAW_DATA_PATH = "raw-frame-data.csv"

# -----------------------------------------------------------------------------
# Device validity and deviating pixels
# -----------------------------------------------------------------------------
MAX_DEVIATING_PIXELS = 4

# Index differences that make two deviating pixels neighbours (exclusive bounds)
ADJACENT_PIXEL_WINDOWS = ((-34, -30), (-2, 2), (30, 34))

# -----------------------------------------------------------------------------
# Single-word fields: name -> (word address, lsb, width)
# -----------------------------------------------------------------------------
FieldLocation = Tuple[int, int, int]

EEPROM_FIELDS: Dict[str, FieldLocation] = {
    "calibration_mode": (0x0A, 11, 1),
    "device_select": (0x0A, 6, 1),
    "occ_scale_remnant": (0x10, 0, 4),
    "occ_scale_column": (0x10, 4, 4),
    "occ_scale_row": (0x10, 8, 4),
    "alpha_ptat": (0x10, 12, 4),
    "offset_average": (0x11, 0, 16),
    "acc_scale_remnant": (0x20, 0, 4),
    "acc_scale_column": (0x20, 4, 4),
    "acc_scale_row": (0x20, 8, 4),
    "alpha_scale": (0x20, 12, 4),
    "alpha_reference": (0x21, 0, 16),
    "gain": (0x30, 0, 16),
    "vptat25": (0x31, 0, 16),
    "kt_ptat": (0x32, 0, 10),
    "kv_ptat": (0x32, 10, 6),
    "vdd25": (0x33, 0, 8),
    "k_vdd": (0x33, 8, 8),
    "kv_row_even_col_even": (0x34, 0, 4),
    "kv_row_odd_col_even": (0x34, 4, 4),
    "kv_row_even_col_odd": (0x34, 8, 4),
    "kv_row_odd_col_odd": (0x34, 12, 4),
    "il_chess_c0": (0x35, 0, 6),
    "il_chess_c1": (0x35, 6, 5),
    "il_chess_c2": (0x35, 11, 5),
    "kta_row_even_col_odd": (0x36, 0, 8),
    "kta_row_odd_col_odd": (0x36, 8, 8),
    "kta_row_even_col_even": (0x37, 0, 8),
    "kta_row_odd_col_even": (0x37, 8, 8),
    "kta_scale_2": (0x38, 0, 4),
    "kta_scale_1": (0x38, 4, 4),
    "kv_scale": (0x38, 8, 4),
    "resolution": (0x38, 12, 2),
    "cp_alpha_0": (0x39, 0, 10),
    "cp_alpha_ratio": (0x39, 10, 6),
    "cp_offset_0": (0x3A, 0, 10),
    "cp_offset_delta": (0x3A, 10, 6),
    "cp_kta": (0x3B, 0, 8),
    "cp_kv": (0x3B, 8, 8),
    "tgc": (0x3C, 0, 8),
    "ks_ta": (0x3C, 8, 8),
    "ks_to_0": (0x3D, 0, 8),
    "ks_to_1": (0x3D, 8, 8),
    "ks_to_2": (0x3E, 0, 8),
    "ks_to_3": (0x3E, 8, 8),
    "ks_to_scale": (0x3F, 0, 4),
    "ct_2": (0x3F, 4, 4),
    "ct_3": (0x3F, 8, 4),
    "temperature_step": (0x3F, 12, 2),
}

# -----------------------------------------------------------------------------
# Indexed fields: name -> (first index, count, locator)
# -----------------------------------------------------------------------------
IndexedField = Tuple[int, int, Callable[[int], FieldLocation]]


def _nibble_table(base: int) -> Callable[[int], FieldLocation]:
    """Four signed nibbles per word, lowest nibble first."""
    return lambda index: (base + index // 4, (index % 4) * 4, 4)


PIXEL_WORD_BASE = 0x40

EEPROM_INDEXED_FIELDS: Dict[str, IndexedField] = {
    "occ_row": (0, FRAME_HEIGHT, _nibble_table(0x12)),
    "occ_column": (0, FRAME_WIDTH, _nibble_table(0x18)),
    "acc_row": (0, FRAME_HEIGHT, _nibble_table(0x22)),
    "acc_column": (0, FRAME_WIDTH, _nibble_table(0x28)),
    "pixel_word": (0, PIXEL_COUNT, lambda index: (PIXEL_WORD_BASE + index, 0, 16)),
    "pixel_outlier": (0, PIXEL_COUNT, lambda index: (PIXEL_WORD_BASE + index, 0, 1)),
    "pixel_kta": (0, PIXEL_COUNT, lambda index: (PIXEL_WORD_BASE + index, 1, 3)),
    "pixel_alpha": (0, PIXEL_COUNT, lambda index: (PIXEL_WORD_BASE + index, 4, 6)),
    "pixel_offset": (0, PIXEL_COUNT, lambda index: (PIXEL_WORD_BASE + index, 10, 6)),
}

# Kta/Kv averages are stored per row/column parity. The table index used by
# the extractor is 2 * (row % 2) + (column % 2). Parity names follow the
# datasheet's 1-based numbering, so "odd" means an even 0-based index.
KTA_PARITY_FIELDS = (
    "kta_row_odd_col_odd",
    "kta_row_odd_col_even",
    "kta_row_even_col_odd",
    "kta_row_even_col_even",
)
KV_PARITY_FIELDS = (
    "kv_row_odd_col_odd",
    "kv_row_odd_col_even",
    "kv_row_even_col_odd",
    "kv_row_even_col_even",
)


def field_location(name: str, index: int = None) -> FieldLocation:
    """Return (word address, lsb, width) for a named field."""
    if name in EEPROM_FIELDS:
        return EEPROM_FIELDS[name]
    if name not in EEPROM_INDEXED_FIELDS:
        raise KeyError(f"Unknown EEPROM field: {name}")
    first, count, locator = EEPROM_INDEXED_FIELDS[name]
    if index is None:
        raise TypeError(f"Field {name} requires an index")
    if not first <= index < first + count:
        raise IndexError(f"index {index} out of range ({first}, {first + count}) for {name}")
    return locator(index)
