"""
Frame compensation: raw MLX90640 subpage codes to object temperatures.

The pixel pipeline is vectorised over the pixels of one subpage. Every step
is written with plain arithmetic operators so that the same code runs on
exact numpy arrays and on UncertainValue ensembles (emissivity
distribution, modeled ADC quantization error).
"""

import logging
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from .errors import NumericDegenerateError
from .memory_map import (
    DEFAULT_ENSEMBLE_SIZE,
    FRAME_CP_SUBPAGE_0,
    FRAME_CP_SUBPAGE_1,
    FRAME_GAIN,
    FRAME_PTAT,
    FRAME_VBE,
    FRAME_VDD_PIX,
    INTERLEAVED_MODE,
    KELVIN_OFFSET,
    PIXEL_COUNT,
    PTAT_SCALE_BITS,
    REFERENCE_TA,
    REFERENCE_VDD,
    SCALE_ALPHA,
    TA_SHIFT,
)
from .models import ParameterSet, RawFrame, TemperatureFrame
from .uncertain import UncertainValue, ensemble_size as shared_ensemble_size, is_uncertain, sqrt, uniform
from .utilities import fourth_power, pow2

logger = logging.getLogger(__name__)

Number = Union[float, np.ndarray, UncertainValue]


def get_vdd(frame: RawFrame, params: ParameterSet) -> float:
    """Supply voltage (V), corrected for the ADC resolution the frame was taken with."""
    resolution_correction = pow2(params.resolution_ee) / pow2(frame.resolution)
    with np.errstate(all="ignore"):
        vdd = (resolution_correction * frame.signed(FRAME_VDD_PIX) - params.vdd25) / np.float64(params.k_vdd)
    return float(vdd + REFERENCE_VDD)


def get_ta(frame: RawFrame, params: ParameterSet, vdd: Optional[float] = None) -> float:
    """Sensor ambient temperature (C) from the PTAT and VBE readings."""
    if vdd is None:
        vdd = get_vdd(frame, params)
    ptat = np.float64(frame.signed(FRAME_PTAT))
    vbe = frame.signed(FRAME_VBE)
    with np.errstate(all="ignore"):
        ptat_art = ptat / (ptat * params.alpha_ptat + vbe) * pow2(PTAT_SCALE_BITS)
        ta = ptat_art / (1 + params.kv_ptat * (vdd - REFERENCE_VDD)) - params.vptat25
        ta = ta / np.float64(params.kt_ptat) + REFERENCE_TA
    return float(ta)


def subpage_patterns() -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (interleaved, chess, conversion) patterns for the 768 pixels."""
    p = np.arange(PIXEL_COUNT)
    il_pattern = p // 32 - (p // 64) * 2
    chess_pattern = il_pattern ^ (p % 2)
    conversion_pattern = ((p + 2) // 4 - (p + 3) // 4 + (p + 1) // 4 - p // 4) * (1 - 2 * il_pattern)
    return il_pattern, chess_pattern, conversion_pattern


def calibration_range(to: Number, ct) -> np.ndarray:
    """
    Index of the calibration range of each temperature.

    Range 0 is below ct[1], 1 below ct[2], 2 below ct[3], 3 otherwise. A value
    equal to a breakpoint belongs to the upper range. For an ensemble the range
    is chosen per member, so the result has the shape of its samples.
    """
    values = to.samples if is_uncertain(to) else np.asarray(to, dtype=np.float64)
    return np.searchsorted(np.asarray(ct, dtype=np.float64)[1:], values, side="right")


def coarse_temperature(ir_data: Number, alpha_compensated, ta_tr: Number, params: ParameterSet) -> Number:
    """First To estimate (C), computed with the reference range slope ksTo[1]."""
    ks_to_1 = params.ks_to[1]
    alpha_cubed = alpha_compensated * alpha_compensated * alpha_compensated
    sx = sqrt(sqrt(alpha_cubed * (ir_data + alpha_compensated * ta_tr))) * ks_to_1
    to = ir_data / (alpha_compensated * (1 - ks_to_1 * KELVIN_OFFSET) + sx) + ta_tr
    return sqrt(sqrt(to)) - KELVIN_OFFSET


def refine_temperature(ir_data: Number, alpha_compensated, ta_tr: Number, to: Number,
                       params: ParameterSet) -> Number:
    """Recompute To with the slope, breakpoint and correction of the range `to` falls in."""
    r = calibration_range(to, params.ct)
    corrections = params.range_corrections()[r]
    ks_to = params.ks_to[r]
    ct = params.ct[r]
    if is_uncertain(to):
        corrections, ks_to, ct = UncertainValue(corrections), UncertainValue(ks_to), UncertainValue(ct)
    result = ir_data / (alpha_compensated * corrections * (1 + ks_to * (to - ct))) + ta_tr
    return sqrt(sqrt(result)) - KELVIN_OFFSET


def _check_emissivity(emissivity: Number):
    values = emissivity.samples if is_uncertain(emissivity) else np.asarray(emissivity, dtype=np.float64)
    if values.size == 0 or np.any(~((values > 0) & (values <= 1))):
        raise NumericDegenerateError(f"Emissivity must lie in (0, 1], got {emissivity!r}")


def _selected_pixels(frame: RawFrame, pixels: Optional[Iterable[int]]) -> np.ndarray:
    il_pattern, chess_pattern, _ = subpage_patterns()
    pattern = il_pattern if frame.mode == INTERLEAVED_MODE else chess_pattern
    mask = pattern == frame.subpage
    if pixels is not None:
        wanted = np.zeros(PIXEL_COUNT, dtype=bool)
        wanted[np.asarray(list(pixels), dtype=np.int64)] = True
        mask &= wanted
    return np.flatnonzero(mask)


def compensate(
    frame: RawFrame,
    params: ParameterSet,
    emissivity: Number,
    reflected_temperature: Optional[Number] = None,
    quantization_error: bool = False,
    *,
    ensemble_size: int = DEFAULT_ENSEMBLE_SIZE,
    rng: Optional[np.random.Generator] = None,
    pixels: Optional[Iterable[int]] = None,
) -> TemperatureFrame:
    """
    Compute object temperatures for the pixels that belong to `frame.subpage`.

    Args:
        frame: one raw subpage capture.
        params: calibration constants of the sensor.
        emissivity: exact value or UncertainValue, in (0, 1].
        reflected_temperature: reflected temperature in C; defaults to
            the sensor ambient temperature minus TA_SHIFT.
        quantization_error: model each raw code as Uniform(code-0.5, code+0.5).
        ensemble_size: samples per quantization draw when emissivity is exact.
        rng: numpy Generator used for the quantization draws.
        pixels: optional subset of pixel indices to compute.

    Returns:
        TemperatureFrame with only this subpage's pixels computed.
    """
    _check_emissivity(emissivity)
    gain_code = frame.signed(FRAME_GAIN)
    if gain_code == 0:
        raise NumericDegenerateError("Gain word of the raw frame is 0")

    vdd = get_vdd(frame, params)
    ta = get_ta(frame, params, vdd)
    tr = ta - TA_SHIFT if reflected_temperature is None else reflected_temperature
    subpage = frame.subpage
    mode = frame.mode
    logger.debug("Subpage %d: vdd=%.4f V, ta=%.3f C, mode=0x%02X", subpage, vdd, ta, mode)

    idx = _selected_pixels(frame, pixels)
    il_pattern, _, conversion_pattern = subpage_patterns()
    ensemble = shared_ensemble_size(emissivity, tr)
    if quantization_error and ensemble is None:
        ensemble = ensemble_size

    with np.errstate(all="ignore"):
        ta_delta = ta - REFERENCE_TA
        vdd_delta = vdd - REFERENCE_VDD
        gain = params.gain_ee / gain_code

        cp_drift = (1 + params.cp_kta * ta_delta) * (1 + params.cp_kv * vdd_delta)
        ir_data_cp = np.array([frame.signed(FRAME_CP_SUBPAGE_0), frame.signed(FRAME_CP_SUBPAGE_1)]) * gain
        ir_data_cp[0] -= params.cp_offset[0] * cp_drift
        if mode == params.calibration_mode_ee:
            ir_data_cp[1] -= params.cp_offset[1] * cp_drift
        else:
            ir_data_cp[1] -= (params.cp_offset[1] + params.il_chess_c[0]) * cp_drift

        ta4 = fourth_power(ta + KELVIN_OFFSET)
        tr4 = fourth_power(tr + KELVIN_OFFSET)
        ta_tr = tr4 - (tr4 - ta4) / emissivity

        codes = frame.pixel_codes[idx].astype(np.float64)
        if quantization_error:
            codes = uniform(codes - 0.5, codes + 0.5, size=ensemble, rng=rng)
        kta = params.kta_coefficients[idx]
        kv = params.kv_coefficients[idx]

        ir_data = codes * gain
        ir_data = ir_data - params.offset[idx] * (1 + kta * ta_delta) * (1 + kv * vdd_delta)
        if mode != params.calibration_mode_ee:
            ir_data = ir_data + (
                params.il_chess_c[2] * (2 * il_pattern[idx] - 1)
                - params.il_chess_c[1] * conversion_pattern[idx]
            )
        ir_data = ir_data - params.tgc * ir_data_cp[subpage]
        ir_data = ir_data / emissivity

        alpha_compensated = SCALE_ALPHA * pow2(params.alpha_scale) / params.alpha[idx]
        alpha_compensated = alpha_compensated * (1 + params.ks_ta * ta_delta)

        to = coarse_temperature(ir_data, alpha_compensated, ta_tr, params)
        to = refine_temperature(ir_data, alpha_compensated, ta_tr, to, params)

    result = TemperatureFrame.empty(ensemble)
    result.values[idx] = to.samples if is_uncertain(to) else to
    result.computed[idx] = True
    result.ambient_temperature = ta
    result.supply_voltage = vdd
    result.subpages = (subpage,)
    return result
