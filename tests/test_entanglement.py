"""
tests/test_entanglement.py - Entanglement pairs and the analyzer

Verifies:
    - Pair construction enforces the minimum correlation
    - Both states in a pair carry the shared label
    - Uncorrelated random windows rarely pair at 0.5
    - Greedy matching uses each state at most once
    - Correlation cache, threshold updates and quality reports
"""
import random

import pytest

from quantumflow.entanglement import (
    EntanglementAnalyzer,
    EntanglementIndex,
    EntanglementPair,
)
from quantumflow.exceptions import EntanglementError
from quantumflow.state import QuantumStateVector
from quantumflow.types import EntanglementConfig


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def rising():
    return QuantumStateVector.from_bytes(bytes([10, 20, 30, 40]))


@pytest.fixture
def rising_shifted():
    return QuantumStateVector.from_bytes(bytes([11, 21, 31, 41]))


@pytest.fixture
def falling():
    return QuantumStateVector.from_bytes(bytes([40, 30, 20, 10]))


@pytest.fixture
def falling_shifted():
    return QuantumStateVector.from_bytes(bytes([41, 31, 21, 11]))


# =============================================================================
# PAIR
# =============================================================================

class TestEntanglementPair:
    def test_self_pair_is_valid(self, rising):
        pair = EntanglementPair(rising, rising.clone())
        assert pair.correlation_strength == 1.0
        assert pair.is_valid()

    def test_states_share_label(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        assert pair.entanglement_id.startswith("entangled-")
        assert pair.state_a.entanglement_id == pair.entanglement_id
        assert pair.state_b.entanglement_id == pair.entanglement_id
        assert rising.entanglement_id is None

    def test_anti_correlated_raises(self, rising, falling):
        with pytest.raises(EntanglementError, match="minimum correlation"):
            EntanglementPair(rising, falling)

    def test_create_if_correlated(self, rising, rising_shifted, falling):
        assert EntanglementPair.create_if_correlated(rising, falling) is None
        assert EntanglementPair.create_if_correlated(rising, rising_shifted) is not None

    def test_random_windows_rarely_pair(self):
        rng = random.Random(42)
        paired = 0
        trials = 50
        for _ in range(trials):
            a = bytes(rng.randrange(256) for _ in range(16))
            b = bytes(rng.randrange(256) for _ in range(16))
            if EntanglementPair.from_data_patterns(a, b, 0.5, chunk_size=16) is not None:
                paired += 1
        assert paired / trials < 0.2

    def test_shared_information_from_similar_bytes(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        assert len(pair.shared_information) == 4

    def test_phase_shift_keeps_correlation(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        shifted = pair.apply_correlated_phase_shift(0.4)
        assert shifted.correlation_strength == pytest.approx(pair.correlation_strength)
        assert shifted.shared_information == pair.shared_information

    def test_break_entanglement_clears_label(self, rising, rising_shifted):
        a, b = EntanglementPair(rising, rising_shifted).break_entanglement()
        assert a.entanglement_id is None
        assert b.entanglement_id is None

    def test_equals_ignores_order(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        assert pair.equals(EntanglementPair(rising_shifted, rising))

    def test_clone_keeps_label(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        assert pair.clone().entanglement_id == pair.entanglement_id

    def test_advanced_correlation_bounded(self, rising, rising_shifted):
        strength = EntanglementPair(rising, rising_shifted).calculate_advanced_correlation_strength()
        assert 0.0 <= strength.overall_strength <= 1.0
        assert strength.pearson_correlation == pytest.approx(1.0, abs=0.05)

    def test_find_pairs_first_fit(self, rising, rising_shifted, falling, falling_shifted):
        pairs = EntanglementPair.find_entanglement_pairs(
            [rising, falling, rising_shifted, falling_shifted]
        )
        assert len(pairs) == 2

    def test_index_lookup(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        index = EntanglementIndex([pair])
        assert pair.entanglement_id in index
        assert index.pair_for(pair.state_a) is pair
        assert index.pair_for(rising) is None
        assert index.remove(pair.entanglement_id) is pair
        assert len(index) == 0


# =============================================================================
# ANALYZER
# =============================================================================

class TestEntanglementAnalyzer:
    def test_matrix_symmetric_unit_diagonal(self, rising, rising_shifted, falling):
        matrix = EntanglementAnalyzer().build_correlation_matrix([rising, rising_shifted, falling])
        assert matrix.shape == (3, 3)
        assert (matrix == matrix.T).all()
        assert [matrix[i, i] for i in range(3)] == [1.0, 1.0, 1.0]

    def test_greedy_uses_each_state_once(self, rising, rising_shifted, falling, falling_shifted):
        states = [rising, falling, rising_shifted, falling_shifted]
        pairs = EntanglementAnalyzer().find_entangled_patterns(states)

        assert len(pairs) == 2
        labels = {p.entanglement_id for p in pairs}
        assert len(labels) == 2

    def test_threshold_stops_scan(self, rising, falling):
        analyzer = EntanglementAnalyzer(EntanglementConfig(min_correlation_threshold=0.9))
        assert analyzer.find_entangled_patterns([rising, falling]) == []

    def test_single_state_has_no_pairs(self, rising):
        assert EntanglementAnalyzer().find_entangled_patterns([rising]) == []

    def test_pair_limit(self, rising, rising_shifted, falling, falling_shifted):
        analyzer = EntanglementAnalyzer(EntanglementConfig(max_entanglement_pairs=1))
        pairs = analyzer.find_entangled_patterns([rising, rising_shifted, falling, falling_shifted])
        assert len(pairs) == 1

    def test_cache_filled_and_cleared(self, rising, rising_shifted, falling):
        analyzer = EntanglementAnalyzer()
        analyzer.build_correlation_matrix([rising, rising_shifted, falling])
        assert analyzer.cache_size == 3

        analyzer.set_correlation_threshold(0.6)
        assert analyzer.correlation_threshold == 0.6
        assert analyzer.cache_size == 0

    def test_state_key_separates_permuted_windows(self, rising, falling):
        # same bytes and phase, different order
        key_rising = EntanglementAnalyzer.state_key(rising)
        key_falling = EntanglementAnalyzer.state_key(falling)

        assert rising.phase == falling.phase
        assert key_rising != key_falling
        phase, digest, length = key_rising.split("_")
        assert phase == f"{rising.phase:.6f}"
        assert len(digest) == 24
        assert length == "4"
        assert EntanglementAnalyzer.state_key(rising.clone()) == key_rising

    def test_threshold_range(self):
        with pytest.raises(ValueError):
            EntanglementAnalyzer().set_correlation_threshold(1.5)

    def test_shared_information_empty(self):
        result = EntanglementAnalyzer().extract_shared_information([])
        assert result.total_shared_bytes == 0
        assert result.shared_patterns == []

    def test_shared_information_totals(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        result = EntanglementAnalyzer().extract_shared_information([pair])
        assert result.total_shared_bytes == len(pair.shared_information)
        assert 0.0 <= result.compression_potential <= 1.0

    def test_correlation_analysis(self, rising, rising_shifted, falling):
        analysis = EntanglementAnalyzer().analyze_correlation_patterns([rising, rising_shifted, falling])
        assert analysis.total_pairs == 3
        assert analysis.max_correlation == pytest.approx(1.0, abs=1e-6)
        assert analysis.min_correlation == 0.0
        assert sum(b.count for b in analysis.correlation_distribution) == 3

    def test_quality_report(self, rising, rising_shifted):
        pair = EntanglementPair(rising, rising_shifted)
        report = EntanglementAnalyzer().validate_entanglement_quality([pair])
        assert len(report.valid_pairs) == 1
        assert report.invalid_pairs == []
        assert report.to_dict()["valid_pairs"] == 1

    def test_metrics_empty(self):
        metrics = EntanglementAnalyzer().calculate_advanced_correlation_metrics([])
        assert metrics.average_correlation == 0.0
        assert len(metrics.correlation_distribution) == 10
