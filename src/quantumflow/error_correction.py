"""
quantumflow/error_correction.py - Redundancy encoding and correction sessions

Mathematical Foundation:
    Encoding keeps several redundant views of a state vector a:

        repetition   three independent copies of a
        parity       ((re_i + re_{i+1}) mod 2, (im_i + im_{i+1}) mod 2) per pair
        hamming      r = ceil(log2(n + ceil(log2 n) + 1)) rows; row k keeps a_j
                     when bit k of (j + 1) is set, syndrome_k = sum of the row
        syndromes    sums of a under three fixed 8-slot masks
        checksum     sum_i 2^(i mod 8) * a_i + e^(i * phase), as "re_im"

    A correction session repeatedly compares the candidate against the
    original with a DecoherenceDetector and repairs each reported error with
    a pure function over the amplitude list:

        amplitude      -> majority vote of the repetition copies at that index
        phase          -> current magnitude, original phase
        normalization  -> renormalize
        entanglement   -> restore the original label

    When targeted repair does not clear every error, a fallback either
    restores the original (low fidelity) or rebuilds each index from the
    magnitude-weighted average of the repetition copies.

Example:
    ecc = QuantumErrorCorrection()
    encoded = ecc.encode_with_error_correction(state)
    result = ecc.decode_with_error_correction(encoded, received=noisy_state)
    result.correction_success      # True
    result.session_state           # SessionState.SUCCESS
"""
from __future__ import annotations

import cmath
import enum
import logging
import math
import statistics
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import NamedTuple

import torch

from . import checksum as checksum_module
from . import degradation
from . import qmath
from .complex_number import ZERO, Complex
from .decoherence import (
    DecoherenceDetector,
    ErrorDetection,
    ErrorType,
    QuantumError,
    ThresholdDecoherenceDetector,
)
from .state import QuantumStateVector
from .superposition import SuperpositionState
from .types import ErrorCorrectionConfig, GracefulDegradationOptions, QuantumChecksumOptions

logger = logging.getLogger(__name__)

REPETITION_FACTOR = 3
SYNDROME_PATTERNS = (
    (1, 0, 1, 0, 1, 0, 1, 0),
    (1, 1, 0, 0, 1, 1, 0, 0),
    (1, 1, 1, 0, 0, 0, 1, 1),
)
FALLBACK_FIDELITY = 0.5
INTACT_SCORE = 0.8
PHASE_COHERENCE_MIN = 0.5
REFERENCE_FIDELITY_MIN = 0.9


class SessionState(str, enum.Enum):
    SUCCESS = "success"
    EXHAUSTED_UNRESOLVED = "exhausted-unresolved"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class HammingCode:
    matrix: tuple[tuple[Complex, ...], ...]
    syndromes: tuple[Complex, ...]
    parity_bits: int


@dataclass(frozen=True)
class EncodedQuantumState:
    """In-memory redundancy bundle. Not a wire format."""
    original_state: QuantumStateVector
    repetition_code: tuple[QuantumStateVector, ...]
    parity_code: tuple[Complex, ...]
    hamming_code: HammingCode
    syndromes: tuple[Complex, ...]
    checksum: str
    timestamp: float


@dataclass
class CorrectionAttempt:
    attempt_number: int
    errors_detected: int
    errors_corrected: int
    fidelity_before: float
    fidelity_after: float
    fallback: str | None = None


@dataclass
class ErrorCorrectionResult:
    corrected_state: QuantumStateVector
    correction_attempts: list[CorrectionAttempt]
    total_errors_detected: int
    total_errors_corrected: int
    correction_success: bool
    final_fidelity: float
    session_state: SessionState

    @property
    def attempts_used(self) -> int:
        return len(self.correction_attempts)

    def to_dict(self) -> dict:
        return {
            "correction_success": self.correction_success,
            "session_state": self.session_state.value,
            "attempts_used": self.attempts_used,
            "total_errors_detected": self.total_errors_detected,
            "total_errors_corrected": self.total_errors_corrected,
            "final_fidelity": round(self.final_fidelity, 6),
            "attempts": [
                {
                    "attempt": a.attempt_number,
                    "errors_detected": a.errors_detected,
                    "errors_corrected": a.errors_corrected,
                    "fidelity_before": round(a.fidelity_before, 6),
                    "fidelity_after": round(a.fidelity_after, 6),
                    "fallback": a.fallback,
                }
                for a in self.correction_attempts
            ],
        }


@dataclass
class IntegrityCheck:
    name: str
    passed: bool
    score: float
    detail: str = ""


@dataclass
class IntegrityReport:
    is_intact: bool
    integrity_score: float
    checks: list[IntegrityCheck] = field(default_factory=list)
    recommended_action: str = ""

    @property
    def failed_checks(self) -> list[str]:
        return [c.name for c in self.checks if not c.passed]

    def to_dict(self) -> dict:
        return {
            "is_intact": self.is_intact,
            "integrity_score": round(self.integrity_score, 4),
            "checks": [
                {"name": c.name, "passed": c.passed, "score": round(c.score, 4), "detail": c.detail}
                for c in self.checks
            ],
            "recommended_action": self.recommended_action,
        }


@dataclass
class SuperpositionCorrectionResult:
    corrected_superposition: SuperpositionState
    constituent_results: list[ErrorCorrectionResult]

    @property
    def correction_success(self) -> bool:
        return all(r.correction_success for r in self.constituent_results)

    @property
    def total_errors_corrected(self) -> int:
        return sum(r.total_errors_corrected for r in self.constituent_results)


# =============================================================================
# PURE CORRECTIONS
# =============================================================================

class _Candidate(NamedTuple):
    amplitudes: tuple[complex, ...]
    entanglement_id: str | None


def majority_vote(amplitudes: Sequence[Complex]) -> Complex:
    """Amplitude whose magnitude is closest to the median magnitude.

    Even counts use the upper median. Ties keep the first candidate.
    """
    if not amplitudes:
        return ZERO
    median = statistics.median_high([a.magnitude for a in amplitudes])
    best = amplitudes[0]
    best_distance = abs(best.magnitude - median)
    for amp in amplitudes[1:]:
        distance = abs(amp.magnitude - median)
        if distance < best_distance:
            best, best_distance = amp, distance
    return best


def _replace(amplitudes: tuple[complex, ...], index: int, value: complex) -> tuple[complex, ...]:
    return amplitudes[:index] + (value,) + amplitudes[index + 1:]


def _correct_amplitude(
    candidate: _Candidate, error: QuantumError, encoded: EncodedQuantumState,
) -> _Candidate:
    i = error.index
    if not 0 <= i < len(candidate.amplitudes):
        return candidate
    votes = [
        replica.amplitudes[i] for replica in encoded.repetition_code if i < len(replica)
    ]
    winner = majority_vote(votes)
    return candidate._replace(amplitudes=_replace(candidate.amplitudes, i, complex(winner)))


def _correct_phase(
    candidate: _Candidate, error: QuantumError, encoded: EncodedQuantumState,
) -> _Candidate:
    i = error.index
    original = encoded.original_state
    if not 0 <= i < min(len(candidate.amplitudes), len(original)):
        return candidate
    magnitude = abs(candidate.amplitudes[i])
    phase = float(torch.angle(original.tensor[i]))
    return candidate._replace(
        amplitudes=_replace(candidate.amplitudes, i, cmath.rect(magnitude, phase))
    )


def _correct_normalization(
    candidate: _Candidate, error: QuantumError, encoded: EncodedQuantumState,
) -> _Candidate:
    total = sum(abs(a) ** 2 for a in candidate.amplitudes)
    if total == 0:
        return candidate
    scale = 1.0 / math.sqrt(total)
    return candidate._replace(amplitudes=tuple(a * scale for a in candidate.amplitudes))


def _correct_entanglement(
    candidate: _Candidate, error: QuantumError, encoded: EncodedQuantumState,
) -> _Candidate:
    return candidate._replace(entanglement_id=encoded.original_state.entanglement_id)


_CORRECTIONS: dict[ErrorType, Callable[[_Candidate, QuantumError, EncodedQuantumState], _Candidate]] = {
    ErrorType.AMPLITUDE: _correct_amplitude,
    ErrorType.PHASE: _correct_phase,
    ErrorType.NORMALIZATION: _correct_normalization,
    ErrorType.ENTANGLEMENT: _correct_entanglement,
}
_DISPATCH_ORDER = {t: n for n, t in enumerate(_CORRECTIONS)}


def _weighted_reconstruction(encoded: EncodedQuantumState, length: int) -> tuple[complex, ...]:
    """Per index: sum(|r| * r) / sum(|r|) over the repetition copies."""
    out = []
    for i in range(length):
        values = [c.tensor[i].item() for c in encoded.repetition_code if i < len(c)]
        weight = sum(abs(v) for v in values)
        if weight == 0:
            out.append(0j)
        else:
            out.append(sum(abs(v) * v for v in values) / weight)
    return tuple(out)


# =============================================================================
# ERROR CORRECTION
# =============================================================================

class QuantumErrorCorrection:
    """Encode, verify and repair state vectors.

    The detector is injectable; any object satisfying DecoherenceDetector
    works.
    """

    def __init__(
        self,
        config: ErrorCorrectionConfig | None = None,
        detector: DecoherenceDetector | None = None,
    ):
        self.config = config or ErrorCorrectionConfig()
        self.detector = detector or ThresholdDecoherenceDetector()

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def encode_with_error_correction(self, state: QuantumStateVector) -> EncodedQuantumState:
        amplitudes = state.amplitudes
        encoded = EncodedQuantumState(
            original_state=state.clone(),
            repetition_code=tuple(state.clone() for _ in range(REPETITION_FACTOR)),
            parity_code=self._parity_code(amplitudes),
            hamming_code=self._hamming_code(amplitudes),
            syndromes=self._syndromes(amplitudes),
            checksum=self._state_checksum(state),
            timestamp=time.time(),
        )
        logger.debug(
            f"Encoded {len(state)} amplitudes "
            f"(hamming parity bits={encoded.hamming_code.parity_bits})"
        )
        return encoded

    @staticmethod
    def _parity_code(amplitudes: Sequence[Complex]) -> tuple[Complex, ...]:
        parity = []
        for i in range(0, len(amplitudes), 2):
            a = amplitudes[i]
            b = amplitudes[i + 1] if i + 1 < len(amplitudes) else ZERO
            parity.append(Complex(
                math.fmod(a.real + b.real, 2),
                math.fmod(a.imaginary + b.imaginary, 2),
            ))
        return tuple(parity)

    @staticmethod
    def _hamming_code(amplitudes: Sequence[Complex]) -> HammingCode:
        n = len(amplitudes)
        parity_bits = math.ceil(math.log2(n + math.ceil(math.log2(n)) + 1))
        matrix = []
        syndromes = []
        for row_index in range(parity_bits):
            row = tuple(
                amp if (j + 1) & (1 << row_index) else ZERO
                for j, amp in enumerate(amplitudes)
            )
            total = ZERO
            for amp in row:
                total = total + amp
            matrix.append(row)
            syndromes.append(total)
        return HammingCode(tuple(matrix), tuple(syndromes), parity_bits)

    @staticmethod
    def _syndromes(amplitudes: Sequence[Complex]) -> tuple[Complex, ...]:
        out = []
        for pattern in SYNDROME_PATTERNS:
            total = ZERO
            for amp, bit in zip(amplitudes, pattern):
                if bit:
                    total = total + amp
            out.append(total)
        return tuple(out)

    @staticmethod
    def _state_checksum(state: QuantumStateVector) -> str:
        total = sum(
            complex(amp) * (2 ** (i % 8)) for i, amp in enumerate(state.amplitudes)
        )
        total += cmath.exp(1j * state.phase)
        return f"{total.real:.6f}_{total.imag:.6f}"

    # -------------------------------------------------------------------------
    # Decoding
    # -------------------------------------------------------------------------

    def decode_with_error_correction(
        self,
        encoded: EncodedQuantumState,
        received: QuantumStateVector | None = None,
    ) -> ErrorCorrectionResult:
        """Run a correction session against ``received``.

        Args:
            encoded: Bundle from encode_with_error_correction
            received: Possibly corrupted copy (defaults to a clone of the original)

        Returns:
            ErrorCorrectionResult; a session that runs out of attempts is
            reported with correction_success=False rather than raised.
        """
        original = encoded.original_state
        threshold = self.config.error_threshold
        current = received if received is not None else original.clone()
        attempts: list[CorrectionAttempt] = []
        total_detected = 0
        total_corrected = 0

        for attempt in range(1, self.config.max_correction_attempts + 1):
            detection = self.detector.detect_quantum_errors(original, current, threshold)
            total_detected += detection.error_count

            if not detection.is_corrupted:
                attempts.append(CorrectionAttempt(
                    attempt, 0, 0, detection.fidelity, detection.fidelity,
                ))
                return self._finish(current, attempts, total_detected, total_corrected,
                                    SessionState.SUCCESS, detection.fidelity)

            repaired = self._apply_corrections(current, detection, encoded)
            verification = self.detector.detect_quantum_errors(original, repaired, threshold)
            corrected = max(0, detection.error_count - verification.error_count)
            total_corrected += corrected
            record = CorrectionAttempt(
                attempt, detection.error_count, corrected,
                detection.fidelity, verification.fidelity,
            )
            attempts.append(record)
            logger.debug(
                f"Correction attempt {attempt}: {detection.error_count} detected, "
                f"{verification.error_count} remaining"
            )

            if not verification.is_corrupted:
                return self._finish(repaired, attempts, total_detected, total_corrected,
                                    SessionState.SUCCESS, verification.fidelity)

            current, record.fallback = self._apply_fallback(repaired, encoded)

        final = self.detector.detect_quantum_errors(original, current, threshold)
        state = SessionState.EXHAUSTED_UNRESOLVED if final.is_corrupted else SessionState.SUCCESS
        if final.is_corrupted:
            logger.warning(
                f"Error correction exhausted after {len(attempts)} attempts "
                f"({final.error_count} errors unresolved)"
            )
        return self._finish(current, attempts, total_detected, total_corrected, state, final.fidelity)

    def _apply_corrections(
        self,
        current: QuantumStateVector,
        detection: ErrorDetection,
        encoded: EncodedQuantumState,
    ) -> QuantumStateVector:
        candidate = _Candidate(
            tuple(complex(a) for a in current.tensor.tolist()),
            current.entanglement_id,
        )
        for error in sorted(detection.errors, key=lambda e: _DISPATCH_ORDER[e.type]):
            candidate = _CORRECTIONS[error.type](candidate, error, encoded)

        if all(a == 0 for a in candidate.amplitudes):
            return encoded.original_state.clone()
        return QuantumStateVector(candidate.amplitudes, current.phase, candidate.entanglement_id)

    def _apply_fallback(
        self,
        current: QuantumStateVector,
        encoded: EncodedQuantumState,
    ) -> tuple[QuantumStateVector, str]:
        original = encoded.original_state
        if self.calculate_fidelity(original, current) < FALLBACK_FIDELITY:
            return original.clone(), "restore-original"

        rebuilt = _weighted_reconstruction(encoded, len(current))
        if all(a == 0 for a in rebuilt):
            return original.clone(), "restore-original"
        return (
            QuantumStateVector(rebuilt, current.phase, original.entanglement_id),
            "weighted-average",
        )

    @staticmethod
    def _finish(
        state: QuantumStateVector,
        attempts: list[CorrectionAttempt],
        detected: int,
        corrected: int,
        session_state: SessionState,
        fidelity: float,
    ) -> ErrorCorrectionResult:
        return ErrorCorrectionResult(
            corrected_state=state,
            correction_attempts=attempts,
            total_errors_detected=detected,
            total_errors_corrected=corrected,
            correction_success=session_state == SessionState.SUCCESS,
            final_fidelity=fidelity,
            session_state=session_state,
        )

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def calculate_fidelity(self, a: QuantumStateVector, b: QuantumStateVector) -> float:
        """Simplified inner-product fidelity: sum |conj(a_i) b_i| / overlap."""
        return qmath.fidelity(a.tensor, b.tensor)

    def verify_integrity(
        self,
        state: QuantumStateVector,
        reference: QuantumStateVector | None = None,
    ) -> IntegrityReport:
        checks: list[IntegrityCheck] = []

        norm_error = abs(state.total_probability() - 1.0)
        checks.append(IntegrityCheck(
            "normalization",
            norm_error < self.config.error_threshold,
            max(0.0, 1.0 - norm_error),
            f"total probability off by {norm_error:.2e}",
        ))

        finite = bool(torch.all(torch.isfinite(torch.view_as_real(state.tensor))))
        checks.append(IntegrityCheck("finite-amplitudes", finite, 1.0 if finite else 0.0))

        phases = state.amplitude_phases()
        coherence = math.exp(-qmath.variance(phases) / math.pi ** 2)
        checks.append(IntegrityCheck(
            "phase-coherence", coherence > PHASE_COHERENCE_MIN, coherence,
        ))

        expected_id = reference.entanglement_id if reference is not None else None
        if state.entanglement_id is not None or expected_id is not None:
            matches = state.entanglement_id is not None and (
                reference is None or state.entanglement_id == expected_id
            )
            checks.append(IntegrityCheck(
                "entanglement-id", matches, 1.0 if matches else 0.0,
                f"label={state.entanglement_id}",
            ))

        if reference is not None:
            fidelity = self.calculate_fidelity(reference, state)
            checks.append(IntegrityCheck(
                "reference-fidelity", fidelity > REFERENCE_FIDELITY_MIN, fidelity,
                f"fidelity={fidelity:.6f}",
            ))

        score = sum(1 for c in checks if c.passed) / len(checks)
        report = IntegrityReport(
            is_intact=score >= INTACT_SCORE,
            integrity_score=score,
            checks=checks,
        )
        report.recommended_action = self._recommendation(report)
        return report

    @staticmethod
    def _recommendation(report: IntegrityReport) -> str:
        score = report.integrity_score
        if score >= 0.9:
            return "State integrity is excellent. No action required."
        if score >= 0.7:
            return "State integrity is good. Monitor for degradation."
        if score >= 0.5:
            return "State integrity is compromised. Apply error correction."
        return (
            f"State integrity is severely compromised. Failed checks: "
            f"{', '.join(report.failed_checks)}. Consider state reconstruction."
        )

    def correct_superposition_errors(
        self,
        superposition: SuperpositionState,
        original: SuperpositionState | None = None,
    ) -> SuperpositionCorrectionResult:
        """Correct every constituent against its reference.

        Without ``original`` each constituent is its own reference, which
        only repairs normalization and labelling drift.
        """
        references = (original or superposition).constituent_states
        if len(references) != len(superposition.constituent_states):
            raise ValueError("Reference superposition must have the same number of constituents")

        results = []
        for reference, received in zip(references, superposition.constituent_states):
            encoded = self.encode_with_error_correction(reference)
            results.append(self.decode_with_error_correction(encoded, received))

        corrected = SuperpositionState.from_quantum_states(
            [r.corrected_state for r in results],
            superposition.weights,
            superposition.coherence_time,
        )
        return SuperpositionCorrectionResult(corrected, results)

    # -------------------------------------------------------------------------
    # Delegation
    # -------------------------------------------------------------------------

    def attempt_graceful_degradation(
        self,
        data: bytes,
        failure_reason: str,
        options: GracefulDegradationOptions | None = None,
    ) -> degradation.FallbackStrategyResult:
        return degradation.attempt_graceful_degradation(data, failure_reason, options)

    def generate_quantum_checksum(
        self,
        data: bytes,
        options: QuantumChecksumOptions | None = None,
    ) -> checksum_module.QuantumChecksum:
        return checksum_module.generate_quantum_checksum(data, options)

    def verify_quantum_checksum(
        self,
        data: bytes,
        expected: checksum_module.QuantumChecksum,
    ) -> checksum_module.ChecksumVerification:
        return checksum_module.verify_quantum_checksum(data, expected)
