"""
quantumflow/entanglement.py - Correlated state pairs and their discovery

"Entanglement" here is a detected statistical correlation between two state
vectors. A pair owns clones of both vectors, stamped with a shared label,
plus the bytes the two decoded windows have in common.

Pair discovery is a greedy maximum-weight matching over the pairwise
correlation matrix: candidates are visited in descending correlation order,
each state joins at most one pair, and the scan stops at the first candidate
below threshold.

Composite Correlation:
    overall = 0.3*|pearson| + 0.2*|spearman| + 0.2*NMI + 0.3*structural
    clamped to [0, 1], all computed on the decoded byte windows.
"""
from __future__ import annotations

import hashlib
import logging
import threading
import time
import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from . import qmath
from .batch import Deadline, OrderedTaskPool, check_deadline
from .exceptions import EntanglementError
from .state import QuantumStateVector
from .types import EntanglementConfig

logger = logging.getLogger(__name__)

MIN_PAIR_CORRELATION = 0.1
SHARED_BYTE_SIMILARITY = 0.7
SIMILAR_BYTE_SIMILARITY = 0.5
HISTOGRAM_BINS = 10


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def new_entanglement_id(created_at: float) -> str:
    return f"entangled-{_base36(int(created_at * 1000))}-{uuid.uuid4().hex[:10]}"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class SimilarByte:
    index: int
    value_a: int
    value_b: int
    similarity: float


@dataclass(frozen=True)
class SimilarRun:
    """Contiguous run of highly similar byte positions."""
    start: int
    length: int
    similarity: float


@dataclass
class DetailedSharedInformation:
    exact_matches: list[int]
    similar_bytes: list[SimilarByte]
    patterns: list[SimilarRun]
    total_shared_bytes: int
    shared_ratio: float
    average_pattern_similarity: float
    compression_potential: float


@dataclass
class CorrelationStrength:
    pearson_correlation: float
    spearman_correlation: float
    mutual_information: float
    normalized_mutual_information: float
    structural_similarity: float
    overall_strength: float


@dataclass
class CorrelatedMeasurement:
    state_a_bytes: bytes
    state_b_bytes: bytes
    correlation: float


# =============================================================================
# ENTANGLEMENT PAIR
# =============================================================================

class EntanglementPair:
    """Two correlated state vectors sharing an entanglement label.

    Raises:
        EntanglementError: if the correlation is outside [0, 1] or below 0.1
    """

    def __init__(
        self,
        state_a: QuantumStateVector,
        state_b: QuantumStateVector,
        shared_information: bytes | None = None,
        entanglement_id: str | None = None,
    ):
        self._creation_time = time.time()
        self._entanglement_id = entanglement_id or new_entanglement_id(self._creation_time)
        self._state_a = state_a.with_entanglement_id(self._entanglement_id)
        self._state_b = state_b.with_entanglement_id(self._entanglement_id)
        self._correlation_strength = self._state_a.calculate_correlation(self._state_b)

        if not 0.0 <= self._correlation_strength <= 1.0:
            raise EntanglementError("Correlation strength must be between 0 and 1")
        if self._correlation_strength < MIN_PAIR_CORRELATION:
            raise EntanglementError(
                f"States must have minimum correlation to form entanglement "
                f"(got {self._correlation_strength:.4f}, need {MIN_PAIR_CORRELATION})"
            )

        if shared_information is None:
            shared_information = self._extract_shared_information()
        self._shared_information = bytes(shared_information)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create_if_correlated(
        cls,
        state_a: QuantumStateVector,
        state_b: QuantumStateVector,
        min_correlation: float = 0.5,
    ) -> EntanglementPair | None:
        """Pair the states only when their correlation reaches ``min_correlation``."""
        correlation = state_a.calculate_correlation(state_b)
        if correlation < max(min_correlation, MIN_PAIR_CORRELATION):
            return None
        return cls(state_a, state_b)

    @classmethod
    def find_entanglement_pairs(
        cls,
        states: Sequence[QuantumStateVector],
        min_correlation: float = 0.5,
    ) -> list[EntanglementPair]:
        """First-fit pairing in input order."""
        pairs: list[EntanglementPair] = []
        used: set[int] = set()
        for i in range(len(states)):
            if i in used:
                continue
            for j in range(i + 1, len(states)):
                if j in used:
                    continue
                pair = cls.create_if_correlated(states[i], states[j], min_correlation)
                if pair is not None:
                    pairs.append(pair)
                    used.update((i, j))
                    break
        return pairs

    @classmethod
    def from_data_patterns(
        cls,
        pattern_a: bytes,
        pattern_b: bytes,
        min_correlation: float = 0.5,
        chunk_size: int = 4,
    ) -> EntanglementPair | None:
        return cls.create_if_correlated(
            QuantumStateVector.from_bytes(pattern_a, chunk_size),
            QuantumStateVector.from_bytes(pattern_b, chunk_size),
            min_correlation,
        )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def state_a(self) -> QuantumStateVector:
        return self._state_a

    @property
    def state_b(self) -> QuantumStateVector:
        return self._state_b

    @property
    def correlation_strength(self) -> float:
        return self._correlation_strength

    @property
    def shared_information(self) -> bytes:
        return self._shared_information

    @property
    def entanglement_id(self) -> str:
        return self._entanglement_id

    @property
    def creation_time(self) -> float:
        return self._creation_time

    def is_valid(self, min_correlation: float = 0.3) -> bool:
        return self._correlation_strength >= min_correlation

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def measure_correlated_states(self) -> CorrelatedMeasurement:
        return CorrelatedMeasurement(
            state_a_bytes=self._state_a.to_bytes(),
            state_b_bytes=self._state_b.to_bytes(),
            correlation=self._correlation_strength,
        )

    def apply_correlated_phase_shift(self, delta: float) -> EntanglementPair:
        """Shift A by +delta and B by -delta. Magnitudes, and so correlation, are kept."""
        return EntanglementPair(
            self._state_a.apply_phase_shift(delta),
            self._state_b.apply_phase_shift(-delta),
            self._shared_information,
        )

    def break_entanglement(self) -> tuple[QuantumStateVector, QuantumStateVector]:
        """Independent copies of both states with the label removed."""
        return (
            self._state_a.with_entanglement_id(None),
            self._state_b.with_entanglement_id(None),
        )

    def calculate_mutual_information(self) -> float:
        """H(A) + H(B) - H(joint), joint_i = pA_i * pB_i * correlation."""
        probs_a = self._state_a.probability_distribution()
        probs_b = self._state_b.probability_distribution()
        n = min(len(probs_a), len(probs_b))
        joint = [probs_a[i] * probs_b[i] * self._correlation_strength for i in range(n)]
        return qmath.entropy(probs_a) + qmath.entropy(probs_b) - qmath.entropy(joint)

    def get_compression_benefit(self) -> float:
        return (
            self.calculate_mutual_information()
            * len(self._shared_information)
            * self._correlation_strength
        )

    def extract_detailed_shared_information(self) -> DetailedSharedInformation:
        bytes_a = self._state_a.to_bytes()
        bytes_b = self._state_b.to_bytes()
        n = min(len(bytes_a), len(bytes_b))

        exact: list[int] = []
        similar: list[SimilarByte] = []
        for i in range(n):
            if bytes_a[i] == bytes_b[i]:
                exact.append(i)
                continue
            sim = qmath.byte_similarity(bytes_a[i], bytes_b[i])
            if sim > SIMILAR_BYTE_SIMILARITY:
                similar.append(SimilarByte(i, bytes_a[i], bytes_b[i], sim))

        runs = _similar_runs(bytes_a[:n], bytes_b[:n])
        total_shared = len(exact) + len(similar)
        avg_similarity = sum(r.similarity for r in runs) / len(runs) if runs else 0.0

        potential = 0.0
        if runs:
            corr = self._correlation_strength
            raw = sum(r.length * r.similarity * corr for r in runs) + total_shared * corr
            potential = min(1.0, raw / max(len(bytes_a), len(bytes_b)))

        return DetailedSharedInformation(
            exact_matches=exact,
            similar_bytes=similar,
            patterns=runs,
            total_shared_bytes=total_shared,
            shared_ratio=total_shared / n if n else 0.0,
            average_pattern_similarity=avg_similarity,
            compression_potential=potential,
        )

    def calculate_advanced_correlation_strength(self) -> CorrelationStrength:
        bytes_a = self._state_a.to_bytes()
        bytes_b = self._state_b.to_bytes()
        n = min(len(bytes_a), len(bytes_b))
        if n == 0:
            return CorrelationStrength(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

        a = np.frombuffer(bytes_a[:n], dtype=np.uint8).astype(np.float64)
        b = np.frombuffer(bytes_b[:n], dtype=np.uint8).astype(np.float64)
        pearson = qmath.pearson(a, b)
        spearman = qmath.spearman(a, b)

        mi = self.calculate_mutual_information()
        max_entropy = max(
            qmath.entropy(self._state_a.probability_distribution()),
            qmath.entropy(self._state_b.probability_distribution()),
        )
        nmi = min(1.0, max(0.0, mi / max_entropy)) if max_entropy > 0 else 0.0
        structural = self.extract_detailed_shared_information().average_pattern_similarity

        overall = 0.3 * abs(pearson) + 0.2 * abs(spearman) + 0.2 * nmi + 0.3 * structural
        return CorrelationStrength(
            pearson_correlation=pearson,
            spearman_correlation=spearman,
            mutual_information=mi,
            normalized_mutual_information=nmi,
            structural_similarity=structural,
            overall_strength=min(1.0, max(0.0, overall)),
        )

    def _extract_shared_information(self) -> bytes:
        bytes_a = self._state_a.to_bytes()
        bytes_b = self._state_b.to_bytes()
        shared = bytearray()
        for x, y in zip(bytes_a, bytes_b):
            if qmath.byte_similarity(x, y) > SHARED_BYTE_SIMILARITY:
                shared.append(round((x + y) / 2))
        return bytes(shared)

    def equals(self, other: EntanglementPair, tolerance: float = 1e-10) -> bool:
        """Order-insensitive structural equality."""
        same = self._state_a.equals(other._state_a, tolerance) and \
            self._state_b.equals(other._state_b, tolerance)
        swapped = self._state_a.equals(other._state_b, tolerance) and \
            self._state_b.equals(other._state_a, tolerance)
        return same or swapped

    def clone(self) -> EntanglementPair:
        return EntanglementPair(
            self._state_a, self._state_b, self._shared_information, self._entanglement_id
        )

    def __repr__(self) -> str:
        return (
            f"EntanglementPair(correlation={self._correlation_strength:.4f}, "
            f"shared={len(self._shared_information)}B, "
            f"benefit={self.get_compression_benefit():.4f})"
        )


def _similar_runs(bytes_a: bytes, bytes_b: bytes) -> list[SimilarRun]:
    """Runs of length >= 2 where byte similarity stays above 0.7."""
    runs: list[SimilarRun] = []
    start = -1
    sims: list[float] = []
    for i, (x, y) in enumerate(zip(bytes_a, bytes_b)):
        sim = qmath.byte_similarity(x, y)
        if sim > SHARED_BYTE_SIMILARITY:
            if start == -1:
                start = i
            sims.append(sim)
            continue
        if start != -1 and len(sims) >= 2:
            runs.append(SimilarRun(start, len(sims), sum(sims) / len(sims)))
        start, sims = -1, []
    if start != -1 and len(sims) >= 2:
        runs.append(SimilarRun(start, len(sims), sum(sims) / len(sims)))
    return runs


class EntanglementIndex:
    """Lookup from entanglement label to pair."""

    def __init__(self, pairs: Sequence[EntanglementPair] = ()):
        self._pairs: dict[str, EntanglementPair] = {}
        for pair in pairs:
            self.add(pair)

    def add(self, pair: EntanglementPair) -> None:
        self._pairs[pair.entanglement_id] = pair

    def get(self, entanglement_id: str) -> EntanglementPair | None:
        return self._pairs.get(entanglement_id)

    def pair_for(self, state: QuantumStateVector) -> EntanglementPair | None:
        if state.entanglement_id is None:
            return None
        return self._pairs.get(state.entanglement_id)

    def remove(self, entanglement_id: str) -> EntanglementPair | None:
        return self._pairs.pop(entanglement_id, None)

    def __len__(self) -> int:
        return len(self._pairs)

    def __iter__(self) -> Iterator[EntanglementPair]:
        return iter(self._pairs.values())

    def __contains__(self, entanglement_id: object) -> bool:
        return entanglement_id in self._pairs


# =============================================================================
# ANALYZER RESULTS
# =============================================================================

@dataclass(frozen=True)
class SharedPattern:
    pattern: bytes
    frequency: int
    correlation_strength: float
    compression_value: float


@dataclass
class SharedInformationResult:
    total_shared_bytes: int
    compression_potential: float
    shared_patterns: list[SharedPattern]
    information_density: float


@dataclass(frozen=True)
class CorrelationBin:
    min: float
    max: float
    count: int
    percentage: float


@dataclass
class CorrelationMetrics:
    average_correlation: float
    weighted_correlation: float
    correlation_variance: float
    correlation_stability: float
    strong_correlation_ratio: float
    correlation_distribution: list[CorrelationBin]


@dataclass
class OptimizedSharedPattern:
    pattern: bytes
    occurrences: int
    average_correlation: float
    compression_savings: int
    compression_value: float
    pair_indices: list[int]


@dataclass
class OptimizedSharedPatterns:
    patterns: list[OptimizedSharedPattern]
    total_compression_savings: int
    compression_ratio: float
    pattern_count: int


@dataclass
class CorrelationAnalysis:
    average_correlation: float
    max_correlation: float
    min_correlation: float
    correlation_distribution: list[CorrelationBin]
    strongly_correlated_pairs: int
    total_pairs: int


@dataclass
class EntanglementQualityReport:
    valid_pairs: list[EntanglementPair]
    invalid_pairs: list[EntanglementPair]
    total_benefit: float
    average_correlation: float
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid_pairs": len(self.valid_pairs),
            "invalid_pairs": len(self.invalid_pairs),
            "total_benefit": round(self.total_benefit, 4),
            "average_correlation": round(self.average_correlation, 4),
            "suggestions": list(self.suggestions),
        }


# =============================================================================
# ANALYZER
# =============================================================================

class EntanglementAnalyzer:
    """Finds and scores correlated state pairs.

    Pairwise correlations are cached by a structural fingerprint of each
    state, so repeated calls over overlapping state sets reuse earlier work.

    Example:
        analyzer = EntanglementAnalyzer(EntanglementConfig(min_correlation_threshold=0.6))
        pairs = analyzer.find_entangled_patterns(states)
        shared = analyzer.extract_shared_information(pairs)
    """

    def __init__(self, config: EntanglementConfig | None = None):
        self.config = config or EntanglementConfig()
        self._threshold = self.config.min_correlation_threshold
        self._cache: dict[tuple[str, str], float] = {}
        self._cache_lock = threading.Lock()

    @property
    def correlation_threshold(self) -> float:
        return self._threshold

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def set_correlation_threshold(self, threshold: float) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("Correlation threshold must be between 0 and 1")
        self._threshold = threshold
        self.clear_cache()

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    # -------------------------------------------------------------------------
    # Correlation matrix
    # -------------------------------------------------------------------------

    @staticmethod
    def state_key(state: QuantumStateVector) -> str:
        digest = hashlib.blake2b(state.tensor.numpy().tobytes(), digest_size=12).hexdigest()
        return f"{state.phase:.6f}_{digest}_{len(state)}"

    def _cache_key(self, a: QuantumStateVector, b: QuantumStateVector) -> tuple[str, str]:
        ka, kb = self.state_key(a), self.state_key(b)
        return (ka, kb) if ka < kb else (kb, ka)

    def pairwise_correlation(self, a: QuantumStateVector, b: QuantumStateVector) -> float:
        key = self._cache_key(a, b)
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = a.calculate_correlation(b)
        with self._cache_lock:
            self._cache[key] = value
        return value

    def build_correlation_matrix(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
    ) -> np.ndarray:
        """Symmetric n x n correlation matrix with a unit diagonal.

        Upper-triangle entries are computed on a bounded pool; the deadline is
        checked before every correlation.
        """
        n = len(states)
        matrix = np.eye(n, dtype=np.float64)
        pairs = [(i, j) for i in range(n) for j in range(i + 1, n)]
        if not pairs:
            return matrix

        def correlate(pair: tuple[int, int]) -> float:
            check_deadline(deadline, "correlation matrix")
            i, j = pair
            return self.pairwise_correlation(states[i], states[j])

        pool: OrderedTaskPool = OrderedTaskPool(correlate, self.config.max_workers)
        for (i, j), outcome in zip(pairs, pool.run(pairs, deadline=deadline)):
            if not outcome.ok:
                raise EntanglementError(f"Correlation of states {i} and {j} failed: {outcome.error}")
            matrix[i, j] = matrix[j, i] = outcome.value
        return matrix

    # -------------------------------------------------------------------------
    # Pair discovery
    # -------------------------------------------------------------------------

    def find_entangled_patterns(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
    ) -> list[EntanglementPair]:
        """Greedy matching over pairs sorted by descending correlation."""
        if len(states) < 2:
            return []

        matrix = self.build_correlation_matrix(states, deadline)
        candidates = [
            (i, j, float(matrix[i, j]))
            for i in range(len(states))
            for j in range(i + 1, len(states))
        ]
        candidates.sort(key=lambda c: c[2], reverse=True)

        pairs: list[EntanglementPair] = []
        used: set[int] = set()
        for i, j, correlation in candidates:
            if i in used or j in used:
                continue
            if correlation < self._threshold:
                break
            try:
                pairs.append(EntanglementPair(states[i], states[j]))
            except EntanglementError as e:
                logger.debug(f"Skipping pair ({i}, {j}): {e}")
                continue
            used.update((i, j))
            if len(pairs) >= self.config.max_entanglement_pairs:
                break

        logger.debug(f"Found {len(pairs)} entangled pairs among {len(states)} states")
        return pairs

    def find_optimal_entanglement_pairs(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
    ) -> list[EntanglementPair]:
        pairs = self.find_entangled_patterns(states, deadline)
        return sorted(pairs, key=lambda p: p.get_compression_benefit(), reverse=True)

    # -------------------------------------------------------------------------
    # Shared information
    # -------------------------------------------------------------------------

    def extract_shared_information(self, pairs: Sequence[EntanglementPair]) -> SharedInformationResult:
        if not pairs:
            return SharedInformationResult(0, 0.0, [], 0.0)

        total_shared = 0
        shared_patterns: list[SharedPattern] = []
        for pair in pairs:
            info = pair.shared_information
            total_shared += len(info)
            for pattern, frequency in _repeated_substrings(info, 1, 4):
                shared_patterns.append(SharedPattern(
                    pattern=pattern,
                    frequency=frequency,
                    correlation_strength=pair.correlation_strength,
                    compression_value=frequency * pair.correlation_strength,
                ))

        potential = 0.0
        if total_shared > 0:
            savings = sum(
                (p.frequency - 1) * len(p.pattern) * p.correlation_strength
                for p in shared_patterns
            )
            potential = min(1.0, savings / total_shared)

        shared_patterns.sort(key=lambda p: p.compression_value, reverse=True)
        return SharedInformationResult(
            total_shared_bytes=total_shared,
            compression_potential=potential,
            shared_patterns=shared_patterns,
            information_density=total_shared / len(pairs),
        )

    def extract_optimized_shared_patterns(
        self,
        pairs: Sequence[EntanglementPair],
        min_pattern_length: int = 2,
    ) -> OptimizedSharedPatterns:
        """Recurring windows of length min_pattern_length..8 across all pairs.

        savings = (occurrences - 1) * pattern_length
        value   = savings * mean correlation of the pairs it came from
        """
        table: dict[bytes, dict[str, Any]] = {}
        for pair_index, pair in enumerate(pairs):
            data = pair.shared_information
            for length in range(min_pattern_length, min(len(data), 8) + 1):
                for offset in range(len(data) - length + 1):
                    window = data[offset:offset + length]
                    info = table.setdefault(
                        window, {"occurrences": 0, "correlation": 0.0, "pairs": []}
                    )
                    info["occurrences"] += 1
                    info["correlation"] += pair.correlation_strength
                    info["pairs"].append(pair_index)

        patterns: list[OptimizedSharedPattern] = []
        for window, info in table.items():
            if info["occurrences"] <= 1:
                continue
            savings = (info["occurrences"] - 1) * len(window)
            avg_corr = info["correlation"] / info["occurrences"]
            patterns.append(OptimizedSharedPattern(
                pattern=window,
                occurrences=info["occurrences"],
                average_correlation=avg_corr,
                compression_savings=savings,
                compression_value=savings * avg_corr,
                pair_indices=info["pairs"],
            ))
        patterns.sort(key=lambda p: p.compression_value, reverse=True)

        total_savings = sum(p.compression_savings for p in patterns)
        total_size = sum(len(p.shared_information) for p in pairs)
        return OptimizedSharedPatterns(
            patterns=patterns,
            total_compression_savings=total_savings,
            compression_ratio=total_savings / total_size if total_size else 0.0,
            pattern_count=len(patterns),
        )

    # -------------------------------------------------------------------------
    # Metrics & reports
    # -------------------------------------------------------------------------

    def calculate_advanced_correlation_metrics(
        self,
        pairs: Sequence[EntanglementPair],
    ) -> CorrelationMetrics:
        if not pairs:
            return CorrelationMetrics(0.0, 0.0, 0.0, 0.0, 0.0, _histogram([]))

        correlations = [p.correlation_strength for p in pairs]
        benefits = [p.get_compression_benefit() for p in pairs]
        average = sum(correlations) / len(correlations)

        total_benefit = sum(benefits)
        if total_benefit > 0:
            weighted = sum(c * b / total_benefit for c, b in zip(correlations, benefits))
        else:
            weighted = average

        var = qmath.variance(correlations)
        stability = max(0.0, 1.0 - var ** 0.5 / average) if average > 0 else 0.0
        strong = sum(1 for c in correlations if c >= self._threshold)

        return CorrelationMetrics(
            average_correlation=average,
            weighted_correlation=weighted,
            correlation_variance=var,
            correlation_stability=stability,
            strong_correlation_ratio=strong / len(correlations),
            correlation_distribution=_histogram(correlations),
        )

    def analyze_correlation_patterns(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
    ) -> CorrelationAnalysis:
        n = len(states)
        if n < 2:
            return CorrelationAnalysis(0.0, 0.0, 0.0, [], 0, 0)

        matrix = self.build_correlation_matrix(states, deadline)
        upper = matrix[np.triu_indices(n, k=1)]
        correlations = upper.tolist()
        return CorrelationAnalysis(
            average_correlation=float(upper.mean()),
            max_correlation=float(upper.max()),
            min_correlation=float(upper.min()),
            correlation_distribution=_histogram(correlations),
            strongly_correlated_pairs=int(np.sum(upper >= self._threshold)),
            total_pairs=len(correlations),
        )

    def validate_entanglement_quality(
        self,
        pairs: Sequence[EntanglementPair],
    ) -> EntanglementQualityReport:
        valid = [p for p in pairs if p.is_valid(self._threshold)]
        invalid = [p for p in pairs if not p.is_valid(self._threshold)]
        total_benefit = sum(p.get_compression_benefit() for p in valid)
        average = sum(p.correlation_strength for p in valid) / len(valid) if valid else 0.0

        suggestions = []
        if invalid:
            suggestions.append(f"{len(invalid)} pairs have correlation below threshold")
        if average < 0.7:
            suggestions.append("Consider lowering correlation threshold for more pairs")
        if len(valid) < len(pairs) * 0.5:
            suggestions.append("Low entanglement success rate - check data patterns")

        return EntanglementQualityReport(
            valid_pairs=valid,
            invalid_pairs=invalid,
            total_benefit=total_benefit,
            average_correlation=average,
            suggestions=suggestions,
        )


def _repeated_substrings(data: bytes, min_len: int, max_len: int) -> list[tuple[bytes, int]]:
    """Substrings of length min_len..max_len occurring more than once, most frequent first."""
    counts: dict[bytes, int] = {}
    for length in range(min_len, min(len(data), max_len) + 1):
        for i in range(len(data) - length + 1):
            window = data[i:i + length]
            counts[window] = counts.get(window, 0) + 1
    repeated = [(w, c) for w, c in counts.items() if c > 1]
    repeated.sort(key=lambda item: item[1], reverse=True)
    return repeated


def _histogram(correlations: Sequence[float]) -> list[CorrelationBin]:
    """Ten equal-width bins over [0, 1]."""
    width = 1.0 / HISTOGRAM_BINS
    counts = [0] * HISTOGRAM_BINS
    for c in correlations:
        counts[min(int(c / width), HISTOGRAM_BINS - 1)] += 1
    total = len(correlations)
    return [
        CorrelationBin(
            min=i * width,
            max=(i + 1) * width,
            count=counts[i],
            percentage=(counts[i] / total * 100.0) if total else 0.0,
        )
        for i in range(HISTOGRAM_BINS)
    ]
