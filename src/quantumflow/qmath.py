"""
quantumflow/qmath.py - Shared numeric primitives

Every higher layer leans on these: normalization, entropy, the amplitude
correlation primitive, interference of amplitude arrays, and the byte-level
statistics (Pearson, Spearman, fidelity) used by the entanglement layer.

Mathematical Foundation:
    Amplitudes a_i are complex; their probabilities are p_i = |a_i|^2 and a
    valid state satisfies sum(p_i) = 1. Entropy is Shannon entropy in bits.

    The correlation primitive is the Pearson coefficient of the magnitude
    profiles |a_i| and |b_i|, clamped to [0, 1]. It is scale invariant, so
    renormalization never changes it, and corr(a, a) = 1 for any a.
"""
from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Union

import numpy as np
import torch

from .complex_number import Complex
from .exceptions import QuantumStateError
from .types import InterferenceKind

DTYPE = torch.complex128
TWO_PI = 2.0 * math.pi

AmplitudeLike = Union[torch.Tensor, Sequence[Complex], Sequence[complex]]


# =============================================================================
# CONVERSIONS
# =============================================================================

def as_tensor(amplitudes: AmplitudeLike) -> torch.Tensor:
    """Coerce amplitudes to a 1-D complex128 tensor (always a fresh copy)."""
    if isinstance(amplitudes, torch.Tensor):
        return amplitudes.detach().to(DTYPE).reshape(-1).clone()
    values = [complex(a) for a in amplitudes]
    return torch.tensor(values, dtype=DTYPE)


def to_complex_list(t: torch.Tensor) -> list[Complex]:
    return [Complex(float(v.real), float(v.imag)) for v in t.tolist()]


# =============================================================================
# PROBABILITY & NORMALIZATION
# =============================================================================

def probability_from_amplitude(amplitude: Complex | complex) -> float:
    """Born rule: p = |a|^2."""
    value = complex(amplitude)
    return value.real * value.real + value.imag * value.imag


def probabilities(amplitudes: torch.Tensor) -> torch.Tensor:
    return amplitudes.abs() ** 2


def total_probability(amplitudes: torch.Tensor) -> float:
    return float(torch.sum(probabilities(amplitudes)))


def normalize_amplitudes(amplitudes: AmplitudeLike) -> torch.Tensor:
    """Scale amplitudes so that sum |a|^2 = 1.

    Raises:
        QuantumStateError: if every amplitude is zero
    """
    t = as_tensor(amplitudes)
    norm = math.sqrt(total_probability(t))
    if norm == 0:
        raise QuantumStateError("Cannot normalize zero amplitudes")
    return t / norm


def byte_phase(value: int) -> float:
    """Map a byte onto [0, 2*pi]."""
    return (value / 255.0) * TWO_PI


# =============================================================================
# ENTROPY
# =============================================================================

def entropy(probs: Sequence[float] | torch.Tensor | np.ndarray) -> float:
    """Shannon entropy in bits. Zero-probability entries are skipped."""
    if isinstance(probs, torch.Tensor):
        p = probs.detach().to(torch.float64)
    else:
        p = torch.as_tensor(np.asarray(probs, dtype=np.float64))
    p = p[p > 0]
    if p.numel() == 0:
        return 0.0
    return float(-torch.sum(p * torch.log2(p)))


def byte_histogram(data: bytes) -> np.ndarray:
    return np.bincount(np.frombuffer(data, dtype=np.uint8), minlength=256)


def data_entropy(data: bytes) -> float:
    """Byte-frequency Shannon entropy, in [0, 8]."""
    if not data:
        return 0.0
    counts = byte_histogram(data)
    return entropy(counts[counts > 0] / len(data))


# =============================================================================
# CORRELATION
# =============================================================================

def amplitude_correlation(a: torch.Tensor, b: torch.Tensor) -> float:
    """Correlation of two equal-length amplitude arrays, in [0, 1].

    Pearson coefficient of the magnitude profiles, negative values clamped to
    zero. Flat profiles have no variance; they score 1.0 when the profiles
    match and 0.0 otherwise.
    """
    if a.shape[0] != b.shape[0]:
        raise ValueError("Amplitude arrays must have the same length")
    if a.shape[0] == 0:
        return 0.0

    ma = a.abs().to(torch.float64)
    mb = b.abs().to(torch.float64)
    if torch.allclose(ma, mb, rtol=0.0, atol=1e-12):
        return 1.0

    da = ma - ma.mean()
    db = mb - mb.mean()
    denom = math.sqrt(float(torch.sum(da * da)) * float(torch.sum(db * db)))
    if denom < 1e-15:
        return 1.0 if torch.allclose(ma, mb, rtol=0.0, atol=1e-10) else 0.0

    r = float(torch.sum(da * db)) / denom
    return min(1.0, max(0.0, r))


def fidelity(a: torch.Tensor, b: torch.Tensor) -> float:
    """Simplified inner-product fidelity over the overlapping range.

    sum |conj(a_i) * b_i| / overlap, capped at 1. Not a true quantum
    fidelity; it is only used to rank correction quality.
    """
    n = min(a.shape[0], b.shape[0])
    if n == 0:
        return 0.0
    overlap = torch.abs(torch.conj(a[:n]) * b[:n])
    return min(1.0, float(torch.sum(overlap)) / n)


def pearson(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> float:
    """Pearson correlation coefficient. 0.0 when either side is constant."""
    xa = np.asarray(x, dtype=np.float64)
    ya = np.asarray(y, dtype=np.float64)
    n = min(len(xa), len(ya))
    if n < 2:
        return 0.0
    xa, ya = xa[:n], ya[:n]
    dx = xa - xa.mean()
    dy = ya - ya.mean()
    denom = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if denom == 0:
        return 0.0
    return float(np.sum(dx * dy)) / denom


def rank(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Ordinal ranks starting at 1. Ties keep input order (stable sort)."""
    arr = np.asarray(values, dtype=np.float64)
    order = np.argsort(arr, kind="stable")
    ranks = np.empty(len(arr), dtype=np.float64)
    ranks[order] = np.arange(1, len(arr) + 1, dtype=np.float64)
    return ranks


def spearman(x: Sequence[float] | np.ndarray, y: Sequence[float] | np.ndarray) -> float:
    n = min(len(x), len(y))
    if n < 2:
        return 0.0
    return pearson(rank(np.asarray(x)[:n]), rank(np.asarray(y)[:n]))


def variance(values: Sequence[float] | np.ndarray) -> float:
    """Population variance."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(np.var(arr))


def byte_similarity(a: int, b: int) -> float:
    return 1.0 - abs(a - b) / 255.0


# =============================================================================
# INTERFERENCE & SUPERPOSITION
# =============================================================================

def apply_interference(
    a: torch.Tensor,
    b: torch.Tensor,
    kind: InterferenceKind = "constructive",
) -> torch.Tensor:
    """Add (constructive) or subtract (destructive) two amplitude arrays.

    The result is renormalized unless it cancelled out completely.
    """
    if a.shape[0] != b.shape[0]:
        raise ValueError("Amplitude arrays must have the same length")
    sign = 1.0 if kind == "constructive" else -1.0
    result = a + sign * b
    if total_probability(result) == 0:
        return result
    return normalize_amplitudes(result)


def interference_strength(amplitudes: torch.Tensor) -> float:
    """Mean probability mass per amplitude."""
    if amplitudes.shape[0] == 0:
        return 0.0
    return total_probability(amplitudes) / amplitudes.shape[0]


def hadamard_transform(amplitude: Complex) -> tuple[Complex, Complex]:
    """Split one amplitude into an equal two-way superposition."""
    s = 1.0 / math.sqrt(2.0)
    return amplitude.scale(s), amplitude.scale(s)


def superpose_pair(a: Complex, b: Complex, weight: float) -> Complex:
    """sqrt(w) * a + sqrt(1 - w) * b."""
    if not 0.0 <= weight <= 1.0:
        raise ValueError("weight must be in [0, 1]")
    return a.scale(math.sqrt(weight)).add(b.scale(math.sqrt(1.0 - weight)))


def weighted_superposition(
    amplitude_sets: Sequence[torch.Tensor],
    weights: Sequence[float],
) -> torch.Tensor:
    """sum_j sqrt(w_j) * a_j with shorter arrays zero-padded to the longest."""
    length = max(t.shape[0] for t in amplitude_sets)
    combined = torch.zeros(length, dtype=DTYPE)
    for amps, w in zip(amplitude_sets, weights):
        combined[: amps.shape[0]] += math.sqrt(w) * amps
    return combined


def normalize_weights(weights: Sequence[float]) -> list[float]:
    """Scale non-negative weights to sum to 1."""
    if any(w < 0 for w in weights):
        raise ValueError("Weights must be non-negative")
    total = float(sum(weights))
    if total <= 0:
        raise ValueError("Weights must not all be zero")
    return [float(w) / total for w in weights]


def quantum_hash(data: bytes) -> str:
    """XOR fold of scaled byte phases, as hex."""
    h = 0
    for value in data:
        h ^= int(math.floor(byte_phase(value) * 1e6))
    return format(h, "x")
