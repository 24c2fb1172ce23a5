"""
quantumflow/decoherence.py - Error detection between a reference and a candidate

Error correction only depends on the ``DecoherenceDetector`` protocol; any
object with a matching ``detect_quantum_errors`` can be plugged in. The
threshold detector below is the default.

Error Types:
    AMPLITUDE      magnitude at an index drifted more than the threshold
    PHASE          per-index phase drifted (wrapped to [-pi, pi])
    NORMALIZATION  total probability left 1 (reported at index -1)
    ENTANGLEMENT   label lost or changed, or a labelled pair decorrelated
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import torch

from . import qmath
from .state import QuantumStateVector

ENTANGLEMENT_MIN_CORRELATION = 0.5


class ErrorType(str, enum.Enum):
    AMPLITUDE = "amplitude"
    PHASE = "phase"
    NORMALIZATION = "normalization"
    ENTANGLEMENT = "entanglement"


@dataclass(frozen=True)
class QuantumError:
    type: ErrorType
    index: int
    severity: float
    description: str = ""


@dataclass
class ErrorDetection:
    errors: list[QuantumError] = field(default_factory=list)
    fidelity: float = 1.0
    error_severity: float = 0.0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def is_corrupted(self) -> bool:
        return bool(self.errors)

    def by_type(self, error_type: ErrorType) -> list[QuantumError]:
        return [e for e in self.errors if e.type == error_type]


@runtime_checkable
class DecoherenceDetector(Protocol):
    """Compares a candidate vector against its reference."""

    def detect_quantum_errors(
        self,
        reference: QuantumStateVector,
        candidate: QuantumStateVector,
        threshold: float,
    ) -> ErrorDetection:
        ...


def squared_overlap(a: QuantumStateVector, b: QuantumStateVector) -> float:
    """|<a|b>|^2 over the overlapping range, clamped to [0, 1]."""
    n = min(len(a), len(b))
    inner = torch.sum(torch.conj(a.tensor[:n]) * b.tensor[:n])
    return min(1.0, max(0.0, float(inner.abs() ** 2)))


class ThresholdDecoherenceDetector:
    """Per-index magnitude and phase comparison."""

    def detect_quantum_errors(
        self,
        reference: QuantumStateVector,
        candidate: QuantumStateVector,
        threshold: float,
    ) -> ErrorDetection:
        errors: list[QuantumError] = []
        n = min(len(reference), len(candidate))
        ref = reference.tensor
        cur = candidate.tensor

        for i in range(n):
            mag_diff = abs(float(ref[i].abs()) - float(cur[i].abs()))
            if mag_diff > threshold:
                errors.append(QuantumError(
                    ErrorType.AMPLITUDE, i, mag_diff,
                    f"Amplitude {i} drifted by {mag_diff:.4f}",
                ))
            phase_diff = abs(_wrap(float(torch.angle(ref[i])) - float(torch.angle(cur[i]))))
            if phase_diff > threshold:
                errors.append(QuantumError(
                    ErrorType.PHASE, i, phase_diff / math.pi,
                    f"Phase {i} drifted by {phase_diff:.4f} rad",
                ))

        norm_error = abs(qmath.total_probability(cur) - 1.0)
        if norm_error > threshold:
            errors.append(QuantumError(
                ErrorType.NORMALIZATION, -1, norm_error,
                f"Total probability off by {norm_error:.4f}",
            ))

        if reference.entanglement_id != candidate.entanglement_id:
            errors.append(QuantumError(
                ErrorType.ENTANGLEMENT, -1, 1.0, "Entanglement label mismatch",
            ))
        elif reference.entanglement_id is not None:
            correlation = reference.calculate_correlation(candidate)
            if correlation < ENTANGLEMENT_MIN_CORRELATION:
                errors.append(QuantumError(
                    ErrorType.ENTANGLEMENT, -1, 1.0 - correlation,
                    f"Entangled state decorrelated ({correlation:.4f})",
                ))

        severity = sum(e.severity for e in errors) / len(errors) if errors else 0.0
        return ErrorDetection(
            errors=errors,
            fidelity=squared_overlap(reference, candidate),
            error_severity=severity,
        )


def _wrap(angle: float) -> float:
    return (angle + math.pi) % (2 * math.pi) - math.pi
