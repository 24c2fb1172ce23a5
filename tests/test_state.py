"""
tests/test_state.py - QuantumStateVector

Verifies:
    - Construction rejects empty and all-zero amplitudes
    - Construction always yields a normalized vector
    - Byte mapping and its lossy inverse
    - Transformations return new vectors and leave the source untouched
    - Correlation primitive on vectors
"""
import math

import pytest
import torch

from quantumflow.complex_number import Complex
from quantumflow.exceptions import QuantumStateError
from quantumflow.state import QuantumStateVector, chunk_bytes


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sample_bytes():
    return bytes([10, 20, 30, 40])


@pytest.fixture
def state(sample_bytes):
    return QuantumStateVector.from_bytes(sample_bytes)


# =============================================================================
# CONSTRUCTION
# =============================================================================

class TestConstruction:
    def test_empty_raises(self):
        with pytest.raises(QuantumStateError, match="at least one amplitude"):
            QuantumStateVector([])

    def test_all_zero_raises(self):
        with pytest.raises(QuantumStateError, match="all zero"):
            QuantumStateVector([0j, 0j, 0j])

    def test_renormalizes(self):
        v = QuantumStateVector([Complex(3.0, 0.0), Complex(0.0, 4.0)])
        assert v.total_probability() == pytest.approx(1.0, abs=1e-10)
        assert v.probability_distribution() == pytest.approx([0.36, 0.64])

    def test_accepts_tensor(self):
        v = QuantumStateVector(torch.tensor([1.0, 1.0], dtype=torch.complex128))
        assert v.is_normalized()

    def test_from_bytes_empty_raises(self):
        with pytest.raises(QuantumStateError):
            QuantumStateVector.from_bytes(b"")

    def test_from_bytes_uses_chunk_window(self):
        v = QuantumStateVector.from_bytes(b"abcdefgh", chunk_size=3)
        assert len(v) == 3

    def test_from_bytes_phase_from_entropy(self, state):
        # four distinct bytes -> 2 bits of entropy
        assert state.phase == pytest.approx(2.0 * math.pi)


class TestByteMapping:
    def test_to_bytes_is_lossy_but_ordered(self, state, sample_bytes):
        decoded = state.to_bytes()
        assert len(decoded) == len(sample_bytes)
        assert decoded != sample_bytes
        assert list(decoded) == sorted(decoded)

    @pytest.mark.parametrize("window", [
        bytes([10, 20, 30, 40]),
        bytes([255, 0, 0, 0]),
        bytes([0] + [255] * 15),
        bytes(range(0, 256, 17)),
        bytes([7]),
    ])
    def test_to_bytes_deviation_bound(self, window):
        decoded = QuantumStateVector.from_bytes(window, chunk_size=len(window)).to_bytes()

        norm = math.sqrt(sum(((b + 1) / 256) ** 2 for b in window))
        expected = [min(255.0, max(0.0, (b + 1) / norm - 1)) for b in window]
        assert len(decoded) == len(window)
        for got, want in zip(decoded, expected):
            assert abs(got - want) <= 1

    def test_chunk_bytes(self):
        states = chunk_bytes(b"0123456789", chunk_size=4)
        assert [len(s) for s in states] == [4, 4, 2]
        assert all(s.is_normalized() for s in states)


# =============================================================================
# TRANSFORMATIONS
# =============================================================================

class TestTransformations:
    def test_phase_shift_wraps(self, state):
        shifted = state.apply_phase_shift(math.pi)
        assert 0.0 <= shifted.phase < 2 * math.pi
        assert shifted.probability_distribution() == pytest.approx(state.probability_distribution())

    def test_phase_shift_returns_new_vector(self, state):
        before = state.tensor
        state.apply_phase_shift(1.0)
        assert torch.equal(state.tensor, before)

    def test_tensor_is_a_copy(self, state):
        t = state.tensor
        t[0] = 0
        assert state.tensor[0] != 0

    def test_with_entanglement_id(self, state):
        tagged = state.with_entanglement_id("entangled-x")
        assert tagged.entanglement_id == "entangled-x"
        assert state.entanglement_id is None
        assert tagged.equals(state)
        assert tagged != state

    def test_normalize_idempotent(self, state):
        assert state.normalize().equals(state)

    def test_clone_equal(self, state):
        assert state.clone() == state


class TestCorrelation:
    def test_self_correlation(self, state):
        assert state.calculate_correlation(state) == 1.0

    def test_phase_invariant(self, state):
        assert state.calculate_correlation(state.apply_phase_shift(0.7)) == pytest.approx(1.0)

    def test_uses_overlap(self, state):
        longer = QuantumStateVector.from_bytes(bytes([10, 20, 30, 40, 250, 1]), chunk_size=6)
        value = state.calculate_correlation(longer)
        assert 0.0 <= value <= 1.0
