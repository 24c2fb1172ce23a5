"""
quantumflow/superposition.py - Weighted superpositions and their analysis

A SuperpositionState combines many state vectors into one amplitude vector
so dominant byte patterns can be read off its probability distribution.

Mathematical Foundation:
    combined_k = sum_j sqrt(w_j) * a_{j,k}       (shorter vectors zero padded)
    p_k        = |combined_k|^2 / sum_m |combined_m|^2

    Using sqrt(w) keeps |combined|^2 linear in the weights for orthogonal
    constituents, the same way quantum amplitudes relate to probabilities.

Coherence:
    A superposition stays analyzable while
        coherence_time * exp(-elapsed / decay_constant) > threshold
    Elapsed time is measured on the monotonic clock from creation.

The SuperpositionProcessor builds superpositions (hierarchically when there
are more states than ``max_superposition_size``), extracts dominant patterns
and processes independent groups on a bounded worker pool.
"""
from __future__ import annotations

import bisect
import itertools
import logging
import math
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import torch

from . import qmath
from .batch import Deadline, OrderedTaskPool, check_deadline
from .complex_number import Complex
from .exceptions import CoherenceError, QuantumStateError
from .state import QuantumStateVector
from .types import InterferenceKind, SuperpositionConfig

logger = logging.getLogger(__name__)

DEFAULT_DECAY_CONSTANT_S = 60.0
WEIGHT_TOLERANCE = 1e-10


@dataclass(frozen=True)
class PatternProbability:
    """One amplitude of a superposition viewed as a candidate pattern."""
    index: int
    amplitude: Complex
    probability: float
    phase: float
    magnitude: float


@dataclass(frozen=True)
class Measurement:
    """Outcome of collapsing a superposition."""
    index: int
    probability: float
    collapsed_state: QuantumStateVector


# =============================================================================
# SUPERPOSITION STATE
# =============================================================================

class SuperpositionState:
    """Weighted superposition of state vectors.

    Example:
        sup = SuperpositionState.from_data_patterns([b"abcd", b"abce"])
        sup.get_dominant_patterns(threshold=0.2)
        sup.measure(random.Random(7)).index
    """

    def __init__(
        self,
        combined_amplitudes: qmath.AmplitudeLike,
        constituent_states: Sequence[QuantumStateVector],
        weights: Sequence[float],
        coherence_time: float = 1.0,
        decay_constant: float = DEFAULT_DECAY_CONSTANT_S,
    ):
        amps = qmath.as_tensor(combined_amplitudes)
        if amps.numel() == 0:
            raise QuantumStateError("Superposition must have at least one amplitude")
        if not constituent_states:
            raise QuantumStateError("Superposition must have at least one constituent state")
        if len(weights) != len(constituent_states):
            raise ValueError("Number of weights must match number of constituent states")
        if coherence_time < 0:
            raise ValueError("Coherence time cannot be negative")
        if any(w < 0 for w in weights):
            raise ValueError("Weights cannot be negative")
        if abs(sum(weights) - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError("Weights must sum to 1")
        if decay_constant <= 0:
            raise ValueError("decay_constant must be positive")

        expected = max(len(s) for s in constituent_states)
        if amps.shape[0] != expected:
            raise ValueError(
                f"Combined amplitudes have length {amps.shape[0]}, expected {expected}"
            )

        self._amplitudes = amps
        self._constituents = tuple(s.clone() for s in constituent_states)
        self._weights = tuple(float(w) for w in weights)
        self._coherence_time = float(coherence_time)
        self._decay_constant = float(decay_constant)
        self._created_at = time.monotonic()

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def from_quantum_states(
        cls,
        states: Sequence[QuantumStateVector],
        weights: Sequence[float] | None = None,
        coherence_time: float = 1.0,
    ) -> SuperpositionState:
        if not states:
            raise QuantumStateError("Cannot create superposition from empty state list")
        if weights is None:
            weights = [1.0] * len(states)
        if len(weights) != len(states):
            raise ValueError("Number of weights must match number of states")
        norm_weights = qmath.normalize_weights(weights)

        combined = qmath.weighted_superposition([s.tensor for s in states], norm_weights)
        combined = qmath.normalize_amplitudes(combined)
        return cls(combined, states, norm_weights, coherence_time)

    @classmethod
    def from_data_patterns(
        cls,
        data_patterns: Sequence[bytes],
        weights: Sequence[float] | None = None,
        coherence_time: float = 1.0,
        chunk_size: int = 4,
    ) -> SuperpositionState:
        if not data_patterns:
            raise QuantumStateError("Cannot create superposition from empty data patterns")
        states = [QuantumStateVector.from_bytes(p, chunk_size) for p in data_patterns]
        return cls.from_quantum_states(states, weights, coherence_time)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def combined_amplitudes(self) -> tuple[Complex, ...]:
        return tuple(qmath.to_complex_list(self._amplitudes))

    @property
    def tensor(self) -> torch.Tensor:
        return self._amplitudes.clone()

    @property
    def constituent_states(self) -> tuple[QuantumStateVector, ...]:
        return self._constituents

    @property
    def weights(self) -> tuple[float, ...]:
        return self._weights

    @property
    def coherence_time(self) -> float:
        return self._coherence_time

    @property
    def decay_constant(self) -> float:
        return self._decay_constant

    @property
    def probability_distribution(self) -> list[float]:
        probs = qmath.probabilities(self._amplitudes)
        total = float(torch.sum(probs))
        if total == 0:
            return probs.tolist()
        return (probs / total).tolist()

    def __len__(self) -> int:
        return int(self._amplitudes.shape[0])

    def total_probability(self) -> float:
        return qmath.total_probability(self._amplitudes)

    # -------------------------------------------------------------------------
    # Pattern analysis
    # -------------------------------------------------------------------------

    def analyze_probability_amplitudes(self) -> list[PatternProbability]:
        """Every amplitude as a pattern, most probable first."""
        probs = self.probability_distribution
        patterns = []
        for i, amp in enumerate(self.combined_amplitudes):
            patterns.append(PatternProbability(
                index=i,
                amplitude=amp,
                probability=probs[i],
                phase=amp.phase,
                magnitude=amp.magnitude,
            ))
        patterns.sort(key=lambda p: p.probability, reverse=True)
        return patterns

    def get_dominant_patterns(self, threshold: float = 0.1) -> list[PatternProbability]:
        return [p for p in self.analyze_probability_amplitudes() if p.probability >= threshold]

    def calculate_entropy(self) -> float:
        return qmath.entropy(self.probability_distribution)

    # -------------------------------------------------------------------------
    # Coherence
    # -------------------------------------------------------------------------

    def elapsed(self) -> float:
        return time.monotonic() - self._created_at

    def remaining_coherence(self, elapsed: float | None = None) -> float:
        """Exponentially decayed coherence at ``elapsed`` seconds (default: now)."""
        t = self.elapsed() if elapsed is None else max(0.0, elapsed)
        return self._coherence_time * math.exp(-t / self._decay_constant)

    def is_coherent(self, threshold: float = 0.1) -> bool:
        return self.remaining_coherence() > threshold

    def apply_decoherence(
        self,
        time_step: float,
        rng: random.Random | None = None,
    ) -> SuperpositionState:
        """Shorten coherence by ``time_step`` and add proportional phase noise."""
        rng = rng or random.Random()
        new_coherence = max(0.0, self._coherence_time - time_step)
        factor = new_coherence / self._coherence_time if self._coherence_time > 0 else 0.0

        noise = torch.tensor(
            [(rng.random() - 0.5) * (1.0 - factor) * math.pi for _ in range(len(self))],
            dtype=torch.float64,
        )
        noisy = self._amplitudes * torch.polar(torch.ones_like(noise), noise)
        return self.with_amplitudes(qmath.normalize_amplitudes(noisy), coherence_time=new_coherence)

    # -------------------------------------------------------------------------
    # Measurement
    # -------------------------------------------------------------------------

    def measure(self, rng: random.Random | None = None) -> Measurement:
        """Collapse onto one amplitude index.

        Index i is drawn with probability p_i by inverting the cumulative
        distribution. The collapsed state is the basis vector at i carrying
        the phase of the combined amplitude there.
        """
        rng = rng or random.Random()
        probs = self.probability_distribution
        index = _sample_index(probs, rng)

        basis = torch.zeros(len(self), dtype=qmath.DTYPE)
        basis[index] = torch.polar(
            torch.tensor(1.0, dtype=torch.float64),
            torch.angle(self._amplitudes[index]),
        )
        collapsed = QuantumStateVector(basis, self._amplitudes[index].angle().item())
        return Measurement(index=index, probability=probs[index], collapsed_state=collapsed)

    def sample_constituent(self, rng: random.Random | None = None) -> tuple[int, QuantumStateVector]:
        """Pick a constituent with probability equal to its weight."""
        rng = rng or random.Random()
        index = _sample_index(self._weights, rng)
        return index, self._constituents[index].clone()

    def with_amplitudes(
        self,
        amplitudes: qmath.AmplitudeLike,
        weights: Sequence[float] | None = None,
        coherence_time: float | None = None,
    ) -> SuperpositionState:
        """New superposition over the same constituents.

        The decay constant and creation clock carry over, so a derived state
        keeps decohering from where this one is.
        """
        derived = SuperpositionState(
            amplitudes,
            self._constituents,
            self._weights if weights is None else weights,
            self._coherence_time if coherence_time is None else coherence_time,
            self._decay_constant,
        )
        derived._created_at = self._created_at
        return derived

    def clone(self) -> SuperpositionState:
        return self.with_amplitudes(self._amplitudes)

    def __repr__(self) -> str:
        return (
            f"SuperpositionState(amplitudes={len(self)}, "
            f"constituents={len(self._constituents)}, "
            f"coherence={self._coherence_time:.3f}, entropy={self.calculate_entropy():.3f})"
        )


def _sample_index(distribution: Sequence[float], rng: random.Random) -> int:
    """Cumulative-distribution inversion."""
    cdf = list(itertools.accumulate(distribution))
    total = cdf[-1]
    if total <= 0:
        raise QuantumStateError("Cannot sample from an all-zero distribution")
    r = rng.random() * total
    index = bisect.bisect_right(cdf, r)
    return min(index, len(cdf) - 1)


# =============================================================================
# PROCESSOR RESULTS
# =============================================================================

@dataclass
class ProcessingMetrics:
    """Per-group processing record."""
    group_index: int
    state_count: int
    pattern_count: int
    processing_time_ms: float
    coherence_time: float
    entropy: float
    error: str | None = None


@dataclass
class ParallelProcessingResult:
    """Output of ``process_parallel_superpositions``, ordered by group index.

    ``superpositions`` and ``pattern_analyses`` hold None for failed groups.
    """
    superpositions: list[SuperpositionState | None]
    pattern_analyses: list[list[PatternProbability]]
    processing_metrics: list[ProcessingMetrics]
    total_processing_time_ms: float
    successful_groups: int
    failed_groups: int


@dataclass
class DominantPattern:
    """A pattern that recurs across several group analyses."""
    key: tuple[float, float, int]
    index: int
    magnitude: float
    phase: float
    average_probability: float
    occurrences: int
    dominance_score: float


@dataclass
class MeasurementResult:
    collapsed_index: int
    collapsed_state: QuantumStateVector
    measurement_probability: float
    detected_patterns: list[PatternProbability]
    coherence_time: float
    entropy: float
    measurement_timestamp: float = field(default_factory=time.time)


@dataclass
class ProcessingEfficiency:
    total_states_processed: int
    total_patterns_detected: int
    average_coherence_time: float
    parallelism_efficiency: float
    pattern_density: float
    processing_speed: float  # states per second
    success_rate: float
    average_processing_time_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_states_processed": self.total_states_processed,
            "total_patterns_detected": self.total_patterns_detected,
            "average_coherence_time": round(self.average_coherence_time, 4),
            "parallelism_efficiency": round(self.parallelism_efficiency, 4),
            "pattern_density": round(self.pattern_density, 4),
            "processing_speed": round(self.processing_speed, 2),
            "success_rate": round(self.success_rate, 4),
            "average_processing_time_ms": round(self.average_processing_time_ms, 3),
        }


# =============================================================================
# PROCESSOR
# =============================================================================

class SuperpositionProcessor:
    """Builds and analyzes superpositions.

    Example:
        processor = SuperpositionProcessor(SuperpositionConfig(max_superposition_size=8))
        sup = processor.create_superposition(chunk_bytes(data))
        patterns = processor.analyze_probability_amplitudes(sup)
    """

    def __init__(self, config: SuperpositionConfig | None = None):
        self.config = config or SuperpositionConfig()

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def create_superposition(
        self,
        states: Sequence[QuantumStateVector],
        weights: Sequence[float] | None = None,
    ) -> SuperpositionState:
        """Superpose ``states`` directly or through a tree reduction."""
        if not states:
            raise QuantumStateError("Cannot create superposition from empty state list")
        if weights is not None and len(weights) != len(states):
            raise ValueError("Number of weights must match number of states")

        if len(states) > self.config.max_superposition_size:
            return self._create_hierarchical(states, weights)

        if weights is None:
            weights = self.calculate_optimal_weights(states)
        return SuperpositionState.from_quantum_states(states, weights)

    def _create_hierarchical(
        self,
        states: Sequence[QuantumStateVector],
        weights: Sequence[float] | None,
    ) -> SuperpositionState:
        group_size = max(1, self.config.max_superposition_size // 2)
        representatives: list[QuantumStateVector] = []

        for start in range(0, len(states), group_size):
            group = states[start:start + group_size]
            group_weights = weights[start:start + group_size] if weights is not None else None
            if group_weights is not None and sum(group_weights) <= 0:
                group_weights = None
            group_sup = SuperpositionState.from_quantum_states(group, group_weights)
            representatives.append(QuantumStateVector(group_sup.tensor))

        logger.debug(
            f"Hierarchical superposition: {len(states)} states -> "
            f"{len(representatives)} representatives"
        )
        if len(representatives) > self.config.max_superposition_size:
            return self._create_hierarchical(representatives, None)

        equal = [1.0 / len(representatives)] * len(representatives)
        return SuperpositionState.from_quantum_states(representatives, equal)

    def calculate_optimal_weights(self, states: Sequence[QuantumStateVector]) -> list[float]:
        """Weight = 0.6 * entropy/8 + 0.4 * complexity, normalized."""
        raw = []
        for state in states:
            h = qmath.entropy(state.probability_distribution())
            raw.append((h / 8.0) * 0.6 + self._state_complexity(state) * 0.4)
        if sum(raw) <= 0:
            return [1.0 / len(states)] * len(states)
        return qmath.normalize_weights(raw)

    @staticmethod
    def _state_complexity(state: QuantumStateVector) -> float:
        """Mean magnitude of consecutive amplitude differences."""
        t = state.tensor
        if t.shape[0] < 2:
            return 0.0
        return float(torch.mean(torch.abs(t[1:] - t[:-1])))

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def analyze_probability_amplitudes(self, sup: SuperpositionState) -> list[PatternProbability]:
        threshold = self.config.pattern_threshold
        return [p for p in sup.analyze_probability_amplitudes() if p.probability >= threshold]

    def process_parallel_superpositions(
        self,
        state_groups: Sequence[Sequence[QuantumStateVector]],
        weights: Sequence[Sequence[float] | None] | None = None,
        deadline: Deadline | None = None,
    ) -> ParallelProcessingResult:
        """Superpose and analyze each group independently.

        Groups run on a pool of ``parallelism_factor`` workers. Output lists
        are indexed by original group position regardless of finish order.
        """
        start = time.perf_counter()
        tasks = [
            (i, group, weights[i] if weights is not None and i < len(weights) else None)
            for i, group in enumerate(state_groups)
        ]

        def run_group(task: tuple[int, Sequence[QuantumStateVector], Sequence[float] | None]):
            _, group, group_weights = task
            check_deadline(deadline, "superposition group")
            sup = self.create_superposition(group, group_weights)
            return sup, self.analyze_probability_amplitudes(sup)

        pool: OrderedTaskPool = OrderedTaskPool(run_group, self.config.parallelism_factor)
        outcomes = pool.run(tasks, deadline=deadline)

        superpositions: list[SuperpositionState | None] = []
        analyses: list[list[PatternProbability]] = []
        metrics: list[ProcessingMetrics] = []
        for outcome, (index, group, _) in zip(outcomes, tasks):
            if outcome.ok:
                sup, patterns = outcome.value
                superpositions.append(sup)
                analyses.append(patterns)
                metrics.append(ProcessingMetrics(
                    group_index=index,
                    state_count=len(group),
                    pattern_count=len(patterns),
                    processing_time_ms=outcome.elapsed_ms,
                    coherence_time=sup.coherence_time,
                    entropy=sup.calculate_entropy(),
                ))
            else:
                superpositions.append(None)
                analyses.append([])
                metrics.append(ProcessingMetrics(
                    group_index=index,
                    state_count=len(group),
                    pattern_count=0,
                    processing_time_ms=outcome.elapsed_ms,
                    coherence_time=0.0,
                    entropy=0.0,
                    error=outcome.error,
                ))

        failed = sum(1 for m in metrics if m.error is not None)
        if failed:
            logger.warning(f"{failed}/{len(metrics)} superposition groups failed")

        return ParallelProcessingResult(
            superpositions=superpositions,
            pattern_analyses=analyses,
            processing_metrics=metrics,
            total_processing_time_ms=(time.perf_counter() - start) * 1000,
            successful_groups=len(metrics) - failed,
            failed_groups=failed,
        )

    def identify_dominant_patterns(
        self,
        analyses: Sequence[Sequence[PatternProbability]],
        dominance_threshold: float = 0.1,
    ) -> list[DominantPattern]:
        """Aggregate patterns that recur across group analyses.

        Patterns share a key when magnitude and phase agree to three decimals
        at the same index. score = 0.7 * mean probability + 0.3 * share of
        groups the pattern occurs in.
        """
        if not analyses:
            return []

        buckets: dict[tuple[float, float, int], list[PatternProbability]] = {}
        for analysis in analyses:
            for pattern in analysis:
                key = (round(pattern.magnitude, 3), round(pattern.phase, 3), pattern.index)
                buckets.setdefault(key, []).append(pattern)

        total_groups = len(analyses)
        dominant = []
        for key, members in buckets.items():
            avg = sum(p.probability for p in members) / len(members)
            score = 0.7 * avg + 0.3 * (len(members) / total_groups)
            if score >= dominance_threshold:
                dominant.append(DominantPattern(
                    key=key,
                    index=key[2],
                    magnitude=key[0],
                    phase=key[1],
                    average_probability=avg,
                    occurrences=len(members),
                    dominance_score=score,
                ))

        dominant.sort(key=lambda d: d.dominance_score, reverse=True)
        return dominant

    # -------------------------------------------------------------------------
    # Manipulation
    # -------------------------------------------------------------------------

    def optimize_superposition(
        self,
        sup: SuperpositionState,
        target_patterns: Sequence[PatternProbability] | None = None,
    ) -> SuperpositionState:
        """Re-weight constituents by the patterns they line up with.

        Raises:
            CoherenceError: if the superposition is no longer coherent
        """
        if not sup.is_coherent(self.config.coherence_threshold):
            raise CoherenceError("Cannot optimize incoherent superposition")

        patterns = list(target_patterns) if target_patterns is not None \
            else self.analyze_probability_amplitudes(sup)
        if not patterns:
            return sup

        constituents = sup.constituent_states
        weights = [1.0 / len(constituents)] * len(constituents)
        for pattern in patterns:
            if pattern.index < len(weights):
                weights[pattern.index] *= 1.0 + pattern.probability

        reweighted = SuperpositionState.from_quantum_states(constituents, weights)
        return sup.with_amplitudes(reweighted.tensor, reweighted.weights)

    def apply_quantum_interference(
        self,
        sup: SuperpositionState,
        kind: InterferenceKind,
        target_indices: Sequence[int],
    ) -> SuperpositionState:
        """Scale the targeted amplitudes by 1.2 or 0.8, then renormalize."""
        factor = 1.2 if kind == "constructive" else 0.8
        amps = sup.tensor
        for index in target_indices:
            if 0 <= index < amps.shape[0]:
                amps[index] = amps[index] * factor
        return sup.with_amplitudes(qmath.normalize_amplitudes(amps))

    def measure_superposition(
        self,
        sup: SuperpositionState,
        rng: random.Random | None = None,
    ) -> MeasurementResult:
        measurement = sup.measure(rng)
        return MeasurementResult(
            collapsed_index=measurement.index,
            collapsed_state=measurement.collapsed_state,
            measurement_probability=measurement.probability,
            detected_patterns=self.analyze_probability_amplitudes(sup),
            coherence_time=sup.coherence_time,
            entropy=sup.calculate_entropy(),
        )

    def calculate_processing_efficiency(self, result: ParallelProcessingResult) -> ProcessingEfficiency:
        metrics = result.processing_metrics
        total_states = sum(m.state_count for m in metrics)
        total_patterns = sum(m.pattern_count for m in metrics)
        ok = [m for m in metrics if m.error is None]
        group_count = len(metrics)
        seconds = result.total_processing_time_ms / 1000.0

        return ProcessingEfficiency(
            total_states_processed=total_states,
            total_patterns_detected=total_patterns,
            average_coherence_time=(
                sum(m.coherence_time for m in ok) / len(ok) if ok else 0.0
            ),
            parallelism_efficiency=len(ok) / group_count if group_count else 0.0,
            pattern_density=total_patterns / total_states if total_states else 0.0,
            processing_speed=total_states / seconds if seconds > 0 else 0.0,
            success_rate=result.successful_groups / group_count if group_count else 0.0,
            average_processing_time_ms=(
                result.total_processing_time_ms / group_count if group_count else 0.0
            ),
        )
