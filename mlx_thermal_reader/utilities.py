"""Two's-complement decoding, scale helpers and unit conversions for sensor data."""

import numpy as np

from .memory_map import KELVIN_OFFSET


def to_signed(value, bits: int = 16):
    """Reinterpret an unsigned `bits`-wide field as two's complement (int or numpy array)."""
    if isinstance(value, np.ndarray):
        value = value.astype(np.int64)
        return np.where(value >= (1 << (bits - 1)), value - (1 << bits), value)
    value = int(value)
    if value >= (1 << (bits - 1)):
        return value - (1 << bits)
    return value


def pow2(exponent) -> float:
    """2 ** exponent as float; exponents come from 4-bit EEPROM scale fields."""
    return float(2.0 ** exponent)


def fourth_power(x):
    """x ** 4 as two squarings, so uncertain values keep a single expression path."""
    x = x * x
    return x * x


class UnitConversion:
    """Temperature conversions (K<->C, C<->F)."""

    @staticmethod
    def k2c(k):
        return k - KELVIN_OFFSET

    @staticmethod
    def c2k(c):
        return c + KELVIN_OFFSET

    @staticmethod
    def c2f(c, diff=False):
        """Celsius to Fahrenheit; diff=True for delta conversion."""
        return c * (9.0 / 5.0) + (0 if diff else 32)

    @staticmethod
    def f2c(f, diff=False):
        """Fahrenheit to Celsius; diff=True for delta conversion."""
        return (f - (0 if diff else 32)) * (5.0 / 9.0)

    @staticmethod
    def convert(c, unit: str, diff=False):
        """Convert a Celsius value (or spread when diff=True) to unit 'C', 'K' or 'F'."""
        if unit == 'C':
            return c
        if unit == 'K':
            return c if diff else UnitConversion.c2k(c)
        if unit == 'F':
            return UnitConversion.c2f(c, diff=diff)
        raise ValueError(f"Unsupported unit: {unit}. Supported units: C, K, F")
