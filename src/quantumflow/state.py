"""
quantumflow/state.py - Quantum state vectors

A QuantumStateVector encodes a short byte window as a normalized complex
amplitude vector with a scalar phase and an optional entanglement label.

Byte Mapping:
    byte b  ->  amplitude with magnitude (b + 1) / 256 and phase b/255 * 2*pi
    vector phase = byte-entropy(data) * pi

Only the first ``chunk_size`` bytes of a buffer are mapped, so callers chunk
long buffers (see ``chunk_bytes``). Construction renormalizes the amplitudes,
which makes ``to_bytes`` an approximate inverse only.

Vectors are logically immutable: every operation returns a new instance and
the backing tensor is never handed out without copying.
"""
from __future__ import annotations

import math
from collections.abc import Iterator, Sequence

import torch

from . import qmath
from .complex_number import Complex
from .exceptions import QuantumStateError

NORMALIZATION_TOLERANCE = 1e-10


class QuantumStateVector:
    """Normalized complex amplitude vector.

    Example:
        state = QuantumStateVector.from_bytes(b"\\x0a\\x14\\x1e\\x28")
        state.probability_distribution()   # four probabilities summing to 1
        shifted = state.apply_phase_shift(math.pi / 2)
    """

    __slots__ = ("_amplitudes", "_phase", "_entanglement_id")

    def __init__(
        self,
        amplitudes: qmath.AmplitudeLike,
        phase: float = 0.0,
        entanglement_id: str | None = None,
    ):
        """Build a state, renormalizing if needed.

        Args:
            amplitudes: Complex amplitudes (tensor, Complex or complex values)
            phase: Global phase of the vector
            entanglement_id: Optional correlation label

        Raises:
            QuantumStateError: on empty or all-zero amplitudes
        """
        t = qmath.as_tensor(amplitudes)
        if t.numel() == 0:
            raise QuantumStateError("Quantum state must have at least one amplitude")
        total = qmath.total_probability(t)
        if total == 0:
            raise QuantumStateError("Quantum state cannot have all zero amplitudes")
        if abs(total - 1.0) > NORMALIZATION_TOLERANCE:
            t = t / math.sqrt(total)

        self._amplitudes = t
        self._phase = float(phase)
        self._entanglement_id = entanglement_id

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int = 4) -> QuantumStateVector:
        """Map the first ``chunk_size`` bytes of ``data`` onto amplitudes."""
        if not data:
            raise QuantumStateError("Cannot create quantum state from empty data")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        window = data[:chunk_size]
        amplitudes = [
            Complex.from_polar((b + 1) / 256.0, qmath.byte_phase(b)) for b in window
        ]
        phase = qmath.data_entropy(data) * math.pi
        return cls(amplitudes, phase)

    @staticmethod
    def create_superposition(
        states: Sequence[QuantumStateVector],
        weights: Sequence[float] | None = None,
    ) -> QuantumStateVector:
        """Weighted superposition: sum_j sqrt(w_j) * a_j, zero padded."""
        if not states:
            raise QuantumStateError("Cannot create superposition from empty states")
        if weights is None:
            weights = [1.0] * len(states)
        if len(weights) != len(states):
            raise ValueError("Number of weights must match number of states")
        norm_weights = qmath.normalize_weights(weights)

        combined = qmath.weighted_superposition(
            [s._amplitudes for s in states], norm_weights
        )
        phase = sum(s.phase * w for s, w in zip(states, norm_weights))
        return QuantumStateVector(combined, phase)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def amplitudes(self) -> tuple[Complex, ...]:
        return tuple(qmath.to_complex_list(self._amplitudes))

    @property
    def tensor(self) -> torch.Tensor:
        """Copy of the backing complex128 tensor."""
        return self._amplitudes.clone()

    @property
    def phase(self) -> float:
        return self._phase

    @property
    def entanglement_id(self) -> str | None:
        return self._entanglement_id

    def __len__(self) -> int:
        return int(self._amplitudes.shape[0])

    def __iter__(self) -> Iterator[Complex]:
        return iter(self.amplitudes)

    def probability_distribution(self) -> list[float]:
        return qmath.probabilities(self._amplitudes).tolist()

    def total_probability(self) -> float:
        return qmath.total_probability(self._amplitudes)

    def is_normalized(self, tolerance: float = NORMALIZATION_TOLERANCE) -> bool:
        return abs(self.total_probability() - 1.0) < tolerance

    def magnitudes(self) -> list[float]:
        return self._amplitudes.abs().tolist()

    def amplitude_phases(self) -> list[float]:
        return torch.angle(self._amplitudes).tolist()

    # -------------------------------------------------------------------------
    # Transformations (all return new vectors)
    # -------------------------------------------------------------------------

    def normalize(self) -> QuantumStateVector:
        return QuantumStateVector(
            qmath.normalize_amplitudes(self._amplitudes),
            self._phase,
            self._entanglement_id,
        )

    def apply_phase_shift(self, delta: float) -> QuantumStateVector:
        """Rotate every amplitude by e^{i*delta}."""
        rotation = complex(Complex.from_polar(1.0, delta))
        new_phase = (self._phase + delta) % qmath.TWO_PI
        return QuantumStateVector(
            self._amplitudes * rotation, new_phase, self._entanglement_id
        )

    def with_amplitudes(self, amplitudes: qmath.AmplitudeLike) -> QuantumStateVector:
        return QuantumStateVector(amplitudes, self._phase, self._entanglement_id)

    def with_entanglement_id(self, entanglement_id: str | None) -> QuantumStateVector:
        return QuantumStateVector(self._amplitudes, self._phase, entanglement_id)

    def clone(self) -> QuantumStateVector:
        return QuantumStateVector(self._amplitudes, self._phase, self._entanglement_id)

    # -------------------------------------------------------------------------
    # Comparison & decoding
    # -------------------------------------------------------------------------

    def calculate_correlation(self, other: QuantumStateVector) -> float:
        """Correlation over the overlapping prefix (shorter length wins)."""
        n = min(len(self), len(other))
        return qmath.amplitude_correlation(self._amplitudes[:n], other._amplitudes[:n])

    def to_bytes(self) -> bytes:
        """Approximate inverse of ``from_bytes`` (lossy).

        Normalization rescales the (b + 1) / 256 magnitudes by their norm, so
        the original bytes are not recovered. For a state built from window
        ``b``, each decoded byte d_i satisfies

            |d_i - clamp((b_i + 1) / ||(b + 1) / 256|| - 1, 0, 255)| <= 1

        Relative byte order is preserved.
        """
        out = bytearray()
        for mag in self.magnitudes():
            value = round(mag * 256 - 1)
            out.append(max(0, min(255, value)))
        return bytes(out)

    def equals(self, other: QuantumStateVector, tolerance: float = 1e-10) -> bool:
        if len(self) != len(other):
            return False
        if abs(self._phase - other._phase) > tolerance:
            return False
        diff = torch.abs(self._amplitudes - other._amplitudes)
        return bool(torch.all(diff < tolerance))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuantumStateVector):
            return NotImplemented
        return self.equals(other) and self._entanglement_id == other._entanglement_id

    def __repr__(self) -> str:
        amps = ", ".join(str(a) for a in self.amplitudes[:4])
        suffix = ", ..." if len(self) > 4 else ""
        tag = f", entangled={self._entanglement_id}" if self._entanglement_id else ""
        return f"QuantumStateVector([{amps}{suffix}], phase={self._phase:.4f}{tag})"


def chunk_bytes(data: bytes, chunk_size: int = 4) -> list[QuantumStateVector]:
    """One state vector per ``chunk_size`` window of ``data``.

    All-zero-magnitude windows cannot occur because every byte maps to a
    magnitude of at least 1/256.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    return [
        QuantumStateVector.from_bytes(data[i:i + chunk_size], chunk_size)
        for i in range(0, len(data), chunk_size)
    ]
