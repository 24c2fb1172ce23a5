"""
tests/test_error_correction.py - Redundancy encoding and correction sessions

Verifies:
    - Encoding builds every redundant view with the expected shapes
    - An uncorrupted state decodes on the first attempt
    - A zeroed amplitude is restored by majority vote + phase repair
    - Sessions that cannot clear errors end EXHAUSTED_UNRESOLVED, not raised
    - Integrity verification and its recommendations
    - Majority vote median semantics
"""
import pytest

from quantumflow.complex_number import ZERO, Complex
from quantumflow.decoherence import ErrorDetection, ErrorType, QuantumError
from quantumflow.error_correction import (
    QuantumErrorCorrection,
    SessionState,
    majority_vote,
)
from quantumflow.state import QuantumStateVector
from quantumflow.superposition import SuperpositionState
from quantumflow.types import ErrorCorrectionConfig


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ecc():
    return QuantumErrorCorrection(ErrorCorrectionConfig(max_correction_attempts=3))


@pytest.fixture
def state():
    return QuantumStateVector.from_bytes(bytes([10, 20, 30, 40]))


def _zero_index(state: QuantumStateVector, index: int) -> QuantumStateVector:
    amps = state.tensor
    amps[index] = 0
    return state.with_amplitudes(amps)


class StubbornDetector:
    """Always reports one normalization error at a fixed fidelity."""

    def __init__(self, fidelity: float):
        self.fidelity = fidelity
        self.calls = 0

    def detect_quantum_errors(self, reference, candidate, threshold):
        self.calls += 1
        return ErrorDetection(
            errors=[QuantumError(ErrorType.NORMALIZATION, -1, 0.5)],
            fidelity=self.fidelity,
            error_severity=0.5,
        )


# =============================================================================
# MAJORITY VOTE
# =============================================================================

class TestMajorityVote:
    def test_odd_count_picks_median(self):
        votes = [Complex(1.0, 0.0), Complex(5.0, 0.0), Complex(3.0, 0.0)]
        assert majority_vote(votes) == Complex(3.0, 0.0)

    def test_even_count_uses_upper_median(self):
        votes = [Complex(1.0, 0.0), Complex(2.0, 0.0), Complex(3.0, 0.0), Complex(4.0, 0.0)]
        assert majority_vote(votes) == Complex(3.0, 0.0)

    def test_tie_keeps_first(self):
        votes = [Complex(2.0, 0.0), Complex(0.0, 2.0), Complex(5.0, 0.0)]
        assert majority_vote(votes) == Complex(2.0, 0.0)

    def test_empty(self):
        assert majority_vote([]) == ZERO


# =============================================================================
# ENCODING
# =============================================================================

class TestEncoding:
    def test_structure(self, ecc, state):
        encoded = ecc.encode_with_error_correction(state)

        assert len(encoded.repetition_code) == 3
        assert all(replica.equals(state) for replica in encoded.repetition_code)
        assert len(encoded.parity_code) == 2
        assert encoded.hamming_code.parity_bits == 3
        assert len(encoded.hamming_code.matrix) == 3
        assert len(encoded.syndromes) == 3
        assert "_" in encoded.checksum

    def test_copies_are_independent(self, ecc, state):
        encoded = ecc.encode_with_error_correction(state)
        assert encoded.repetition_code[0] is not encoded.repetition_code[1]
        assert encoded.original_state is not state


# =============================================================================
# DECODING
# =============================================================================

class TestDecoding:
    def test_uncorrupted_first_attempt(self, ecc, state):
        result = ecc.decode_with_error_correction(ecc.encode_with_error_correction(state))

        assert result.correction_success
        assert result.session_state == SessionState.SUCCESS
        assert result.attempts_used == 1
        assert result.total_errors_detected == 0
        assert result.final_fidelity == pytest.approx(1.0)

    def test_zeroed_amplitude_restored(self, ecc, state):
        encoded = ecc.encode_with_error_correction(state)
        result = ecc.decode_with_error_correction(encoded, _zero_index(state, 2))

        assert result.correction_success
        assert result.attempts_used == 1
        assert result.total_errors_detected == 5
        assert result.total_errors_corrected == 5
        assert result.corrected_state.equals(state, tolerance=1e-9)
        assert result.final_fidelity == pytest.approx(1.0)

    def test_lost_label_restored(self, ecc, state):
        tagged = state.with_entanglement_id("entangled-abc")
        encoded = ecc.encode_with_error_correction(tagged)
        result = ecc.decode_with_error_correction(encoded, state)

        assert result.correction_success
        assert result.corrected_state.entanglement_id == "entangled-abc"

    def test_exhausted_session_not_raised(self):
        # one amplitude keeps calculate_fidelity at 1.0, above the restore cutoff
        single = QuantumStateVector.from_bytes(bytes([42]))
        detector = StubbornDetector(fidelity=0.9)
        ecc = QuantumErrorCorrection(ErrorCorrectionConfig(max_correction_attempts=3), detector)
        result = ecc.decode_with_error_correction(ecc.encode_with_error_correction(single))

        assert not result.correction_success
        assert result.session_state == SessionState.EXHAUSTED_UNRESOLVED
        assert result.attempts_used == 3
        assert [a.fallback for a in result.correction_attempts] == ["weighted-average"] * 3
        # detect + verify per attempt, then one final check
        assert detector.calls == 7

    def test_fallback_gated_by_calculate_fidelity(self, state):
        # the detector claims 0.9, but sum |conj(a) b| / n is 0.25 for four amplitudes
        ecc = QuantumErrorCorrection(ErrorCorrectionConfig(max_correction_attempts=2), StubbornDetector(0.9))
        encoded = ecc.encode_with_error_correction(state)
        assert ecc.calculate_fidelity(state, state) < 0.5

        result = ecc.decode_with_error_correction(encoded)

        assert result.session_state == SessionState.EXHAUSTED_UNRESOLVED
        assert [a.fallback for a in result.correction_attempts] == ["restore-original"] * 2
        assert result.corrected_state.equals(state)

    def test_to_dict(self, ecc, state):
        result = ecc.decode_with_error_correction(ecc.encode_with_error_correction(state))
        data = result.to_dict()
        assert data["session_state"] == "success"
        assert data["attempts_used"] == 1


# =============================================================================
# VERIFICATION
# =============================================================================

class TestVerification:
    def test_simplified_fidelity(self, ecc, state):
        assert ecc.calculate_fidelity(state, state) == pytest.approx(1.0 / len(state))

    def test_intact_state(self, ecc, state):
        report = ecc.verify_integrity(state)
        assert report.is_intact
        assert report.integrity_score == 1.0
        assert report.recommended_action.startswith("State integrity is excellent")
        assert [c.name for c in report.checks] == [
            "normalization", "finite-amplitudes", "phase-coherence",
        ]

    def test_reference_checks(self, ecc):
        single = QuantumStateVector([1 + 0j])
        report = ecc.verify_integrity(single, reference=single.clone())
        assert report.is_intact
        assert "reference-fidelity" in [c.name for c in report.checks]

    def test_reference_check_uses_calculate_fidelity(self, ecc, state):
        report = ecc.verify_integrity(state, reference=state.clone())
        check = next(c for c in report.checks if c.name == "reference-fidelity")

        assert check.score == pytest.approx(ecc.calculate_fidelity(state, state))
        assert check.score == pytest.approx(0.25)
        assert not check.passed
        assert report.integrity_score == pytest.approx(0.75)
        assert not report.is_intact

    def test_mismatched_reference(self, ecc):
        state = QuantumStateVector([1 + 0j, 0j])
        reference = QuantumStateVector([0j, 1 + 0j]).with_entanglement_id("entangled-x")
        report = ecc.verify_integrity(state, reference)

        assert not report.is_intact
        assert report.integrity_score == pytest.approx(0.6)
        assert set(report.failed_checks) == {"entanglement-id", "reference-fidelity"}
        assert "Apply error correction" in report.recommended_action
        assert report.to_dict()["is_intact"] is False


# =============================================================================
# SUPERPOSITION
# =============================================================================

class TestSuperpositionCorrection:
    def test_constituents_repaired(self, ecc, state):
        other = QuantumStateVector.from_bytes(bytes([200, 100, 50, 25]))
        original = SuperpositionState.from_quantum_states([state, other], [0.6, 0.4])
        damaged = SuperpositionState.from_quantum_states(
            [_zero_index(state, 2), other], [0.6, 0.4]
        )

        result = ecc.correct_superposition_errors(damaged, original)
        assert result.correction_success
        assert len(result.constituent_results) == 2
        assert result.corrected_superposition.constituent_states[0].equals(state, tolerance=1e-9)
        assert list(result.corrected_superposition.weights) == pytest.approx([0.6, 0.4])

    def test_constituent_count_mismatch(self, ecc, state):
        single = SuperpositionState.from_quantum_states([state])
        double = SuperpositionState.from_quantum_states([state, state.clone()])
        with pytest.raises(ValueError):
            ecc.correct_superposition_errors(double, single)


class TestDelegation:
    def test_checksum_round_trip(self, ecc):
        checksum = ecc.generate_quantum_checksum(b"payload bytes")
        assert ecc.verify_quantum_checksum(b"payload bytes", checksum).is_valid

    def test_graceful_degradation(self, ecc):
        result = ecc.attempt_graceful_degradation(b"abc" * 10, "quantum state error")
        assert result.success
