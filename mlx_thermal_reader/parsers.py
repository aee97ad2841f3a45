"""Extract MLX90640 calibration parameters from the 832-word EEPROM image."""

import logging
from typing import Any, Dict, List, Sequence

import numpy as np

from .errors import MalformedCalibrationError
from .memory_map import (
    ADJACENT_PIXEL_WINDOWS,
    CHESS_MODE,
    EEPROM_INDEXED_FIELDS,
    EEPROM_WORD_COUNT,
    FRAME_WIDTH,
    KTA_PARITY_FIELDS,
    KV_PARITY_FIELDS,
    MAX_DEVIATING_PIXELS,
    PIXEL_COUNT,
    SCALE_ALPHA,
    field_location,
)
from .models import ParameterSet
from .utilities import pow2, to_signed

logger = logging.getLogger(__name__)

# Renormalisation targets for the integer per-pixel tables
ALPHA_TABLE_CEILING = 32767.4
COEFFICIENT_TABLE_CEILING = 63.4


class CalibrationRecord:
    """Read-only view over EEPROM words with accessors by field name."""

    def __init__(self, words: Sequence[int]):
        arr = np.asarray(words)
        if arr.ndim != 1 or arr.size != EEPROM_WORD_COUNT:
            raise MalformedCalibrationError(
                f"Calibration record must have {EEPROM_WORD_COUNT} words, got {arr.size}",
                code="length",
            )
        if arr.min() < 0 or arr.max() > 0xFFFF:
            raise MalformedCalibrationError("Calibration words must be unsigned 16-bit values", code="range")
        self.words = [int(w) for w in arr]

    def get_bits(self, address: int, lsb: int, width: int) -> int:
        return (self.words[address] >> lsb) & ((1 << width) - 1)

    def field(self, name: str, index: int = None) -> int:
        """Unsigned value of a named field."""
        return self.get_bits(*field_location(name, index))

    def signed_field(self, name: str, index: int = None) -> int:
        """Two's-complement value of a named field."""
        _, _, width = field_location(name, index)
        return to_signed(self.field(name, index), width)

    def signed_table(self, name: str) -> List[int]:
        first, count, _ = EEPROM_INDEXED_FIELDS[name]
        return [self.signed_field(name, i) for i in range(first, first + count)]


class CalibrationParser:
    """Decode an EEPROM image into a ParameterSet, following the vendor extraction order."""

    def parse(self, words: Sequence[int]) -> ParameterSet:
        record = CalibrationRecord(words)
        self._check_device_select(record)
        ee: Dict[str, Any] = {}
        self._extract_vdd_parameters(record, ee)
        self._extract_ptat_parameters(record, ee)
        self._extract_gain_parameters(record, ee)
        self._extract_tgc_parameters(record, ee)
        self._extract_resolution_parameters(record, ee)
        self._extract_ks_ta_parameters(record, ee)
        self._extract_ks_to_parameters(record, ee)
        self._extract_cp_parameters(record, ee)
        self._extract_alpha_parameters(record, ee)
        self._extract_offset_parameters(record, ee)
        self._extract_kta_pixel_parameters(record, ee)
        self._extract_kv_pixel_parameters(record, ee)
        self._extract_cilc_parameters(record, ee)
        self._extract_deviating_pixels(record, ee)
        params = ParameterSet(**ee)
        logger.debug(
            "Extracted calibration: gainEE=%d, ct=%s, alphaScale=%d, ktaScale=%d, kvScale=%d, "
            "calibrationModeEE=0x%02X",
            params.gain_ee, params.ct.tolist(), params.alpha_scale, params.kta_scale,
            params.kv_scale, params.calibration_mode_ee,
        )
        return params

    def _check_device_select(self, record: CalibrationRecord):
        if record.field("device_select") != 0:
            raise MalformedCalibrationError(
                "EEPROM device-select bit is set; the record is not a valid MLX90640 image",
                code="device_select",
            )

    def _extract_vdd_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        ee["k_vdd"] = record.signed_field("k_vdd") * 32
        ee["vdd25"] = (record.field("vdd25") - 256) * 32 - 8192

    def _extract_ptat_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        ee["kv_ptat"] = record.signed_field("kv_ptat") / 4096.0
        ee["kt_ptat"] = record.signed_field("kt_ptat") / 8.0
        ee["vptat25"] = record.signed_field("vptat25")
        ee["alpha_ptat"] = record.field("alpha_ptat") / 4.0 + 8.0

    def _extract_gain_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        ee["gain_ee"] = record.signed_field("gain")

    def _extract_tgc_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        ee["tgc"] = record.signed_field("tgc") / 32.0

    def _extract_resolution_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        ee["resolution_ee"] = record.field("resolution")

    def _extract_ks_ta_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        ee["ks_ta"] = record.signed_field("ks_ta") / 8192.0

    def _extract_ks_to_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        """Range breakpoints ct[0..3] (C) and per-range sensitivity slopes ksTo[0..3]."""
        step = record.field("temperature_step") * 10
        ct2 = record.field("ct_2") * step
        ct3 = ct2 + record.field("ct_3") * step
        ee["ct"] = [-40, 0, ct2, ct3]
        scale = pow2(record.field("ks_to_scale") + 8)
        ee["ks_to"] = [record.signed_field(f"ks_to_{i}") / scale for i in range(4)]

    def _extract_cp_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        alpha_scale = record.field("alpha_scale") + 27
        cp_alpha_0 = record.signed_field("cp_alpha_0") / pow2(alpha_scale)
        cp_alpha_1 = (1 + record.signed_field("cp_alpha_ratio") / 128.0) * cp_alpha_0
        ee["cp_alpha"] = [cp_alpha_0, cp_alpha_1]

        cp_offset_0 = record.signed_field("cp_offset_0")
        ee["cp_offset"] = [cp_offset_0, cp_offset_0 + record.signed_field("cp_offset_delta")]

        ee["cp_kta"] = record.signed_field("cp_kta") / pow2(record.field("kta_scale_1") + 8)
        ee["cp_kv"] = record.signed_field("cp_kv") / pow2(record.field("kv_scale"))

    def _row_column_table(self, record: CalibrationRecord, prefix: str) -> np.ndarray:
        """Row plus column contribution per pixel, each scaled by its power-of-two field."""
        rows = np.array(record.signed_table(f"{prefix}_row"), dtype=np.int64)
        columns = np.array(record.signed_table(f"{prefix}_column"), dtype=np.int64)
        rows = rows * (1 << record.field(f"{prefix}_scale_row"))
        columns = columns * (1 << record.field(f"{prefix}_scale_column"))
        return (rows[:, np.newaxis] + columns[np.newaxis, :]).reshape(PIXEL_COUNT)

    def _extract_alpha_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        """
        Per-pixel sensitivity, stored inverted (SCALE_ALPHA / alpha) as a 16-bit
        integer table with a shared power-of-two scale.
        """
        remnant = np.array(record.signed_table("pixel_alpha"), dtype=np.int64)
        remnant = remnant * (1 << record.field("acc_scale_remnant"))
        alpha = record.field("alpha_reference") + self._row_column_table(record, "acc") + remnant
        alpha = alpha / pow2(record.field("alpha_scale") + 30)
        alpha = alpha - ee["tgc"] * (ee["cp_alpha"][0] + ee["cp_alpha"][1]) / 2
        if np.any(alpha <= 0):
            bad = np.flatnonzero(alpha <= 0)
            raise MalformedCalibrationError(
                f"Non-positive pixel sensitivity for {bad.size} pixel(s), first at index {bad[0]}",
                code="alpha",
            )
        alpha = SCALE_ALPHA / alpha

        temp = float(alpha.max())
        alpha_scale = 0
        while temp < ALPHA_TABLE_CEILING:
            temp *= 2
            alpha_scale += 1
        ee["alpha"] = np.floor(alpha * pow2(alpha_scale) + 0.5).astype(np.int64)
        ee["alpha_scale"] = alpha_scale

    def _extract_offset_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        remnant = np.array(record.signed_table("pixel_offset"), dtype=np.int64)
        remnant = remnant * (1 << record.field("occ_scale_remnant"))
        ee["offset"] = record.signed_field("offset_average") + self._row_column_table(record, "occ") + remnant

    @staticmethod
    def _parity_index() -> np.ndarray:
        rows, columns = np.divmod(np.arange(PIXEL_COUNT), FRAME_WIDTH)
        return 2 * (rows % 2) + columns % 2

    @staticmethod
    def _renormalise(values: np.ndarray) -> tuple:
        """Scale so the largest magnitude lands just under 2 * ceiling, round half away from zero."""
        temp = float(np.abs(values).max())
        scale = 0
        if temp > 0:
            while temp < COEFFICIENT_TABLE_CEILING:
                temp *= 2
                scale += 1
        scaled = values * pow2(scale)
        return np.trunc(scaled + np.where(scaled < 0, -0.5, 0.5)).astype(np.int64), scale

    def _extract_kta_pixel_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        averages = np.array([record.signed_field(name) for name in KTA_PARITY_FIELDS], dtype=np.int64)
        pixel_kta = np.array(record.signed_table("pixel_kta"), dtype=np.int64)
        pixel_kta = pixel_kta * (1 << record.field("kta_scale_2"))
        kta = (averages[self._parity_index()] + pixel_kta) / pow2(record.field("kta_scale_1") + 8)
        ee["kta"], ee["kta_scale"] = self._renormalise(kta)

    def _extract_kv_pixel_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        averages = np.array([record.signed_field(name) for name in KV_PARITY_FIELDS], dtype=np.int64)
        kv = averages[self._parity_index()] / pow2(record.field("kv_scale"))
        ee["kv"], ee["kv_scale"] = self._renormalise(kv)

    def _extract_cilc_parameters(self, record: CalibrationRecord, ee: Dict[str, Any]):
        """Calibration readout mode and the interleaved/chess correction constants."""
        ee["calibration_mode_ee"] = (record.field("calibration_mode") << 7) ^ CHESS_MODE
        ee["il_chess_c"] = [
            record.signed_field("il_chess_c0") / 16.0,
            record.signed_field("il_chess_c1") / 2.0,
            record.signed_field("il_chess_c2") / 8.0,
        ]

    def _extract_deviating_pixels(self, record: CalibrationRecord, ee: Dict[str, Any]):
        broken = [p for p in range(PIXEL_COUNT) if record.field("pixel_word", p) == 0]
        outliers = [p for p in range(PIXEL_COUNT) if record.field("pixel_outlier", p)]
        ee["broken_pixels"] = tuple(broken)
        ee["outlier_pixels"] = tuple(outliers)

        if len(broken) > MAX_DEVIATING_PIXELS:
            raise MalformedCalibrationError(f"Too many broken pixels: {len(broken)}", code="broken_pixels")
        if len(outliers) > MAX_DEVIATING_PIXELS:
            raise MalformedCalibrationError(f"Too many outlier pixels: {len(outliers)}", code="outlier_pixels")
        if len(broken) + len(outliers) > MAX_DEVIATING_PIXELS:
            raise MalformedCalibrationError(
                f"Too many deviating pixels: {len(broken) + len(outliers)}", code="deviating_pixels"
            )
        deviating = broken + outliers
        for i, first in enumerate(deviating):
            for second in deviating[i + 1:]:
                if _adjacent(first, second):
                    raise MalformedCalibrationError(
                        f"Deviating pixels {first} and {second} are adjacent", code="adjacent_pixels"
                    )
        if deviating:
            logger.debug("Deviating pixels: broken=%s outliers=%s", broken, outliers)


def _adjacent(first: int, second: int) -> bool:
    diff = first - second
    return any(low < diff < high for low, high in ADJACENT_PIXEL_WINDOWS)


def extract_parameters(words: Sequence[int]) -> ParameterSet:
    """Extract the ParameterSet from 832 EEPROM words."""
    return CalibrationParser().parse(words)


