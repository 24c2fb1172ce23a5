"""
tests/test_interference.py - Interference optimizer

Verifies:
    - Constructive interference never lowers a pattern's probability
    - Detection classifies in-phase and anti-phase pairs
    - Profile registry lookup, creation and data-type profiles
    - Adaptive thresholds only apply when enabled
    - Iterative optimization converges, respects max_iterations and deadlines
"""
import math
import time

import pytest

from quantumflow import superposition as superposition_module
from quantumflow.batch import Deadline
from quantumflow.complex_number import Complex
from quantumflow.exceptions import DeadlineExceeded
from quantumflow.interference import (
    InterferenceOptimizer,
    data_type_profile,
    preset_profiles,
)
from quantumflow.state import QuantumStateVector, chunk_bytes
from quantumflow.superposition import PatternProbability, SuperpositionState
from quantumflow.types import InterferenceConfig


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def optimizer():
    return InterferenceOptimizer()


@pytest.fixture
def state():
    return QuantumStateVector.from_bytes(bytes([10, 20, 30, 40]))


def _pattern(index: int, magnitude: float) -> PatternProbability:
    amplitude = Complex(magnitude, 0.0)
    return PatternProbability(
        index=index,
        amplitude=amplitude,
        probability=magnitude * magnitude,
        phase=0.0,
        magnitude=magnitude,
    )


# =============================================================================
# PATTERN INTERFERENCE
# =============================================================================

class TestPatternInterference:
    def test_constructive_never_lowers_probability(self, optimizer):
        patterns = [_pattern(0, 0.95), _pattern(1, 0.9), _pattern(2, 0.2)]
        boosted = optimizer.apply_constructive_interference(patterns)

        assert [p.original_index for p in boosted] == [0, 1]
        for p in boosted:
            assert p.optimized_probability >= p.original_probability
            assert p.interference_type == "constructive"

    def test_destructive_suppresses_weak(self, optimizer):
        patterns = [_pattern(0, 0.95), _pattern(1, 0.3)]
        suppressed = optimizer.apply_destructive_interference(patterns)

        assert [p.original_index for p in suppressed] == [1]
        assert suppressed[0].optimized_probability < suppressed[0].original_probability

    def test_optimize_superposition_stays_normalized(self, optimizer):
        sup = SuperpositionState.from_data_patterns([b"\x01\x02\xf0\x03", b"\x02\x01\xf1\x02"])
        result = optimizer.optimize_superposition(sup)
        assert result.optimized_superposition.total_probability() == pytest.approx(1.0)

    def test_optimize_superposition_keeps_coherence_clock(self, optimizer, monkeypatch):
        clock = [50.0]
        monkeypatch.setattr(superposition_module.time, "monotonic", lambda: clock[0])
        base = SuperpositionState.from_data_patterns([b"\x01\x02\xf0\x03", b"\x02\x01\xf1\x02"])
        sup = SuperpositionState(
            base.tensor, base.constituent_states, base.weights, coherence_time=0.8, decay_constant=4.0
        )
        clock[0] = 54.0

        optimized = optimizer.optimize_superposition(sup).optimized_superposition
        assert optimized.decay_constant == 4.0
        assert optimized.coherence_time == pytest.approx(0.8)
        assert optimized.remaining_coherence() == pytest.approx(0.8 * math.exp(-1))


# =============================================================================
# STATE INTERFERENCE
# =============================================================================

class TestDetection:
    def test_identical_states_fully_constructive(self, optimizer, state):
        patterns = optimizer.detect_interference_patterns([state, state.clone()])
        assert len(patterns) == 1
        assert patterns[0].kind == "constructive"
        assert patterns[0].strength == pytest.approx(1.0)
        assert patterns[0].constructive_indices == (0, 1, 2, 3)
        assert patterns[0].destructive_indices == ()

    def test_anti_phase_fully_destructive(self, optimizer, state):
        patterns = optimizer.detect_interference_patterns([state, state.apply_phase_shift(math.pi)])
        assert patterns[0].kind == "destructive"
        assert patterns[0].strength == pytest.approx(1.0)
        assert patterns[0].destructive_indices == (0, 1, 2, 3)

    def test_uncorrelated_pairs_skipped(self, optimizer, state):
        falling = QuantumStateVector.from_bytes(bytes([40, 30, 20, 10]))
        assert optimizer.detect_interference_patterns([state, falling]) == []

    def test_optimize_counts_operations(self, optimizer, state):
        result = optimizer.optimize_quantum_states([state, state.clone()])
        assert result.metrics.constructive_operations == 8
        assert result.metrics.average_amplification == pytest.approx(0.5)
        assert all(s.is_normalized() for s in result.optimized_states)

    def test_optimize_empty(self, optimizer):
        result = optimizer.optimize_quantum_states([])
        assert result.optimized_states == []


# =============================================================================
# PROFILES
# =============================================================================

class TestProfiles:
    def test_presets_include_data_type_profiles(self):
        names = preset_profiles()
        for name in ("default", "conservative", "aggressive", "high-quality", "text-optimized"):
            assert name in names

    def test_load_profile(self, optimizer):
        optimizer.load_threshold_profile("aggressive")
        assert optimizer.current_profile == "aggressive"
        assert optimizer.thresholds.constructive_threshold == 0.6
        assert optimizer.thresholds.amplification_factor == 1.8

    def test_unknown_profile_raises(self, optimizer):
        with pytest.raises(KeyError, match="not found"):
            optimizer.load_threshold_profile("missing")

    def test_create_profile_registers(self, optimizer):
        optimizer.create_threshold_profile("mine", 0.9, 0.1, 2.0, 0.05)
        assert "mine" in optimizer.available_profiles()
        optimizer.load_threshold_profile("mine")
        assert optimizer.get_current_thresholds().constructive_threshold == 0.9

    def test_registries_are_independent(self):
        first = InterferenceOptimizer()
        first.create_threshold_profile("local", 0.9, 0.1, 2.0, 0.05)
        assert "local" not in InterferenceOptimizer().available_profiles()

    def test_unknown_data_type(self):
        with pytest.raises(ValueError):
            data_type_profile("video")

    def test_data_type_recommendation(self, optimizer, state):
        result = optimizer.optimize_thresholds_for_data_type([state], "text")
        assert result.recommended_profile == "text-optimized"
        assert result.optimized_thresholds.constructive_threshold == 0.6

    def test_data_type_empty_keeps_current(self, optimizer):
        result = optimizer.optimize_thresholds_for_data_type([], "binary")
        assert result.recommended_profile == "default"
        assert result.expected_improvement == 0.0


class TestAdaptiveThresholds:
    def test_disabled_by_default(self, optimizer, state):
        before = optimizer.thresholds
        result = optimizer.adjust_thresholds_adaptively([state])
        assert not result.applied
        assert optimizer.thresholds == before

    def test_high_entropy_widens_gap(self, state):
        optimizer = InterferenceOptimizer(InterferenceConfig(adaptive_thresholds=True))
        result = optimizer.adjust_thresholds_adaptively([state])

        assert result.applied
        assert result.adjusted_thresholds.constructive_threshold == pytest.approx(0.8)
        assert result.adjusted_thresholds.destructive_threshold == pytest.approx(0.2)
        assert optimizer.thresholds == result.adjusted_thresholds


# =============================================================================
# ITERATIVE
# =============================================================================

class TestIterativeOptimization:
    def test_identical_states_converge_immediately(self, optimizer, state):
        result = optimizer.perform_iterative_optimization([state, state.clone()])
        assert result.converged
        assert len(result.iterations) == 1
        assert result.total_improvement == pytest.approx(0.0, abs=1e-9)

    def test_respects_max_iterations(self):
        optimizer = InterferenceOptimizer(InterferenceConfig(max_iterations=2))
        states = chunk_bytes(bytes(range(0, 256, 7)), chunk_size=4)
        result = optimizer.perform_iterative_optimization(states)
        assert 1 <= len(result.iterations) <= 2
        assert [it.iteration_number for it in result.iterations] == list(range(1, len(result.iterations) + 1))

    def test_empty_input(self, optimizer):
        result = optimizer.perform_iterative_optimization([])
        assert result.iterations == []
        assert not result.converged

    def test_expired_deadline(self, optimizer, state):
        deadline = Deadline(0.001)
        time.sleep(0.01)
        with pytest.raises(DeadlineExceeded):
            optimizer.perform_iterative_optimization([state, state.clone()], deadline)

    def test_minimal_representation_never_worse(self, optimizer):
        states = chunk_bytes(b"aaab" * 8, chunk_size=4)
        result = optimizer.optimize_for_minimal_representation(states)
        assert result.rounds >= 1
        assert result.representation_ratio <= 1.0
        assert result.compression_achieved == pytest.approx(1.0 - result.representation_ratio)
