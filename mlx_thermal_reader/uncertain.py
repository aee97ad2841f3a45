"""
Uncertain values represented as Monte Carlo ensembles.

An UncertainValue stores N samples along the last axis of `samples`; the
leading axes are the value's own shape (a scalar, a vector of pixels, ...).
Arithmetic applies element-wise per ensemble member, so member k of every
operand is the same Monte Carlo draw. A value shared by many pixels (the
emissivity) therefore stays correlated across them, while per-pixel draws
(ADC quantization) stay independent.

Exact operands (floats, numpy arrays) broadcast against every member, which
lets the compensation code be written once for both exact and uncertain
inputs. The ensemble size is the accuracy/performance knob: the standard
error of a mean shrinks as 1/sqrt(N). See DEFAULT_ENSEMBLE_SIZE.
"""

import numpy as np

from .memory_map import DEFAULT_ENSEMBLE_SIZE


class UncertainValue:
    """Immutable ensemble of samples; the last axis is the ensemble axis."""

    # numpy defers to our reflected operators instead of broadcasting us as an object
    __array_ufunc__ = None

    def __init__(self, samples):
        samples = np.array(samples, dtype=np.float64)
        if samples.ndim == 0:
            raise ValueError("An uncertain value needs at least one sample")
        samples.setflags(write=False)
        self._samples = samples

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    @property
    def shape(self) -> tuple:
        return self._samples.shape[:-1]

    @property
    def ensemble_size(self) -> int:
        return self._samples.shape[-1]

    def __getitem__(self, index):
        if not self.shape:
            raise TypeError("A scalar uncertain value is not indexable")
        return UncertainValue(self._samples[index])

    def _operand(self, other):
        if isinstance(other, UncertainValue):
            if other.ensemble_size != self.ensemble_size:
                raise ValueError(
                    f"Ensemble sizes differ: {self.ensemble_size} != {other.ensemble_size}"
                )
            return other._samples
        return np.asarray(other, dtype=np.float64)[..., np.newaxis]

    def __add__(self, other):
        return UncertainValue(self._samples + self._operand(other))

    def __radd__(self, other):
        return UncertainValue(self._operand(other) + self._samples)

    def __sub__(self, other):
        return UncertainValue(self._samples - self._operand(other))

    def __rsub__(self, other):
        return UncertainValue(self._operand(other) - self._samples)

    def __mul__(self, other):
        return UncertainValue(self._samples * self._operand(other))

    def __rmul__(self, other):
        return UncertainValue(self._operand(other) * self._samples)

    def __truediv__(self, other):
        return UncertainValue(self._samples / self._operand(other))

    def __rtruediv__(self, other):
        return UncertainValue(self._operand(other) / self._samples)

    def __pow__(self, other):
        return UncertainValue(self._samples ** self._operand(other))

    def __rpow__(self, other):
        return UncertainValue(self._operand(other) ** self._samples)

    def __neg__(self):
        return UncertainValue(-self._samples)

    def __pos__(self):
        return self

    def __abs__(self):
        return UncertainValue(np.abs(self._samples))

    # Comparisons are decided per ensemble member and return boolean samples.
    def __lt__(self, other):
        return self._samples < self._operand(other)

    def __le__(self, other):
        return self._samples <= self._operand(other)

    def __gt__(self, other):
        return self._samples > self._operand(other)

    def __ge__(self, other):
        return self._samples >= self._operand(other)

    def apply(self, func):
        """Apply an element-wise numpy function to every sample."""
        return UncertainValue(func(self._samples))

    def mean(self):
        return _unwrap(np.mean(self._samples, axis=-1))

    def var(self, ddof: int = 0):
        return _unwrap(np.var(self._samples, axis=-1, ddof=ddof))

    def std(self, ddof: int = 0):
        return _unwrap(np.std(self._samples, axis=-1, ddof=ddof))

    def quantile(self, q):
        return _unwrap(np.quantile(self._samples, q, axis=-1))

    def support(self) -> tuple:
        """(min, max) over the ensemble."""
        return _unwrap(np.min(self._samples, axis=-1)), _unwrap(np.max(self._samples, axis=-1))

    def __float__(self):
        if self.shape:
            raise TypeError("Only scalar uncertain values can be converted to float")
        return float(self.mean())

    def __repr__(self):
        if not self.shape:
            return (
                f"UncertainValue(mean={self.mean():.6g}, std={self.std():.3g}, "
                f"n={self.ensemble_size})"
            )
        return f"UncertainValue(shape={self.shape}, n={self.ensemble_size})"


def _unwrap(result):
    if np.ndim(result) == 0:
        return float(result)
    return result


def is_uncertain(value) -> bool:
    return isinstance(value, UncertainValue)


def uniform(low, high, size: int = DEFAULT_ENSEMBLE_SIZE, rng=None) -> UncertainValue:
    """Uniform distribution over [low, high); low/high may be arrays (one value per element)."""
    if size < 1:
        raise ValueError(f"Ensemble size must be positive, got {size}")
    rng = np.random.default_rng() if rng is None else rng
    low = np.asarray(low, dtype=np.float64)
    high = np.asarray(high, dtype=np.float64)
    shape = np.broadcast(low, high).shape + (size,)
    return UncertainValue(rng.uniform(low[..., np.newaxis], high[..., np.newaxis], size=shape))


def apply(func, value):
    """Apply an element-wise numpy function to an exact or uncertain value."""
    if isinstance(value, UncertainValue):
        return value.apply(func)
    return func(value)


def sqrt(value):
    return apply(np.sqrt, value)


def expected(value):
    """Mean of an uncertain value, or the value itself when exact."""
    if isinstance(value, UncertainValue):
        return value.mean()
    return value


def ensemble_size(*values):
    """Ensemble size shared by the uncertain values among `values`, or None."""
    sizes = {v.ensemble_size for v in values if isinstance(v, UncertainValue)}
    if len(sizes) > 1:
        raise ValueError(f"Mixed ensemble sizes: {sorted(sizes)}")
    return sizes.pop() if sizes else None
