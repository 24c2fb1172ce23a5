"""
quantumflow/interference.py - Threshold-gated amplitude amplification

The interference optimizer biases probability mass toward dominant patterns:
amplitudes whose probability clears the constructive threshold are scaled up,
amplitudes under the destructive threshold are scaled down, and the state is
renormalized.

Interference Detection:
    For two correlated states a, b over their overlap, the constructive share
    of index k is
        c_k = |a_k + b_k|^2 / (2 * (|a_k|^2 + |b_k|^2))
    (c_k + d_k = 1 by the parallelogram law). The pattern's overall strength
    is the same ratio summed over all indices. Indices with c_k at or above
    the constructive threshold are amplified; indices with c_k at or below
    the destructive threshold are suppressed.

Profiles:
    Named threshold bundles come from factory functions (``preset_profiles``)
    or YAML files (``quantumflow.loader.ProfileLoader``). Every optimizer
    owns its own registry copy; there is no module-level mutable registry.
"""
from __future__ import annotations

import logging
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

import torch

from . import qmath
from .batch import Deadline, check_deadline
from .complex_number import Complex
from .state import QuantumStateVector
from .superposition import PatternProbability, SuperpositionState
from .types import (
    DataType,
    InterferenceConfig,
    InterferenceKind,
    ThresholdConfiguration,
    ThresholdProfile,
)

logger = logging.getLogger(__name__)

MAX_MINIMAL_REPRESENTATION_ROUNDS = 20


# =============================================================================
# PRESET PROFILES
# =============================================================================

def default_profile() -> ThresholdProfile:
    return ThresholdProfile(
        name="default",
        description="Balanced amplification and suppression",
        constructive_threshold=0.7,
        destructive_threshold=0.3,
        amplification_factor=1.5,
        suppression_factor=0.1,
    )


def conservative_profile() -> ThresholdProfile:
    return ThresholdProfile(
        name="conservative",
        description="Minimal changes, preserves the original distribution",
        constructive_threshold=0.8,
        destructive_threshold=0.2,
        amplification_factor=1.3,
        suppression_factor=0.15,
    )


def aggressive_profile() -> ThresholdProfile:
    return ThresholdProfile(
        name="aggressive",
        description="Strong amplification for maximum concentration",
        constructive_threshold=0.6,
        destructive_threshold=0.4,
        amplification_factor=1.8,
        suppression_factor=0.05,
    )


def high_quality_profile() -> ThresholdProfile:
    return ThresholdProfile(
        name="high-quality",
        description="Favors fidelity over concentration",
        constructive_threshold=0.75,
        destructive_threshold=0.25,
        amplification_factor=1.4,
        suppression_factor=0.12,
    )


_DATA_TYPE_THRESHOLDS: dict[str, tuple[float, float, float, float]] = {
    "text": (0.6, 0.4, 1.8, 0.05),
    "binary": (0.8, 0.2, 1.3, 0.15),
    "image": (0.7, 0.3, 1.6, 0.08),
    "audio": (0.65, 0.35, 1.7, 0.06),
    "mixed": (0.7, 0.3, 1.5, 0.1),
}

_DATA_TYPE_MULTIPLIERS: dict[str, float] = {
    "text": 1.3,
    "binary": 0.8,
    "image": 1.1,
    "audio": 1.2,
    "mixed": 1.0,
}


def data_type_profile(kind: DataType) -> ThresholdProfile:
    """Profile tuned for one class of input data."""
    if kind not in _DATA_TYPE_THRESHOLDS:
        raise ValueError(f"Unknown data type: {kind}")
    c, d, a, s = _DATA_TYPE_THRESHOLDS[kind]
    return ThresholdProfile(
        name=f"{kind}-optimized",
        description=f"Optimized for {kind} data",
        constructive_threshold=c,
        destructive_threshold=d,
        amplification_factor=a,
        suppression_factor=s,
    )


def preset_profiles() -> dict[str, ThresholdProfile]:
    """Fresh copy of the built-in profiles, keyed by name."""
    profiles = [default_profile(), conservative_profile(), aggressive_profile(), high_quality_profile()]
    profiles.extend(data_type_profile(kind) for kind in _DATA_TYPE_THRESHOLDS)
    return {p.name: p for p in profiles}


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class OptimizedPattern:
    original_index: int
    original_amplitude: Complex
    optimized_amplitude: Complex
    original_probability: float
    optimized_probability: float
    interference_type: InterferenceKind
    amplification_factor: float
    phase: float
    magnitude: float
    compression_value: float


@dataclass(frozen=True)
class InterferencePattern:
    """Interference between two correlated states."""
    kind: InterferenceKind
    strength: float
    correlation: float
    state_indices: tuple[int, int]
    constructive_indices: tuple[int, ...]
    destructive_indices: tuple[int, ...]


@dataclass
class OptimizationMetrics:
    total_states: int = 0
    optimized_states: int = 0
    constructive_operations: int = 0
    destructive_operations: int = 0
    total_amplification: float = 0.0
    total_suppression: float = 0.0
    average_amplification: float = 0.0
    average_suppression: float = 0.0
    compression_improvement: float = 0.0


@dataclass
class StateOptimizationResult:
    original_states: list[QuantumStateVector]
    optimized_states: list[QuantumStateVector]
    interference_patterns: list[InterferencePattern]
    metrics: OptimizationMetrics


@dataclass
class SuperpositionOptimizationResult:
    original_superposition: SuperpositionState
    optimized_superposition: SuperpositionState
    constructive_patterns: list[OptimizedPattern]
    destructive_patterns: list[OptimizedPattern]
    compression_improvement: float


@dataclass
class DataCharacteristics:
    average_entropy: float = 0.0
    entropy_variance: float = 0.0
    probability_concentration: float = 0.0
    correlation_strength: float = 0.0
    pattern_complexity: float = 0.0


@dataclass
class ThresholdAdjustmentResult:
    original_thresholds: ThresholdConfiguration
    adjusted_thresholds: ThresholdConfiguration
    data_characteristics: DataCharacteristics
    expected_improvement: float
    applied: bool


@dataclass
class QualityMetrics:
    fidelity: float = 0.0
    information_preservation: float = 0.0
    compression_efficiency: float = 0.0
    overall_quality: float = 0.0


@dataclass
class MinimalRepresentationResult:
    original_states: list[QuantumStateVector]
    minimal_states: list[QuantumStateVector]
    representation_ratio: float
    compression_achieved: float
    quality_metrics: QualityMetrics
    rounds: int


@dataclass
class DataTypeOptimizationResult:
    data_type: DataType
    original_thresholds: ThresholdConfiguration
    optimized_thresholds: ThresholdConfiguration
    expected_improvement: float
    recommended_profile: str


@dataclass(frozen=True)
class OptimizationIteration:
    iteration_number: int
    input_states: int
    output_states: int
    compression_improvement: float
    constructive_operations: int
    destructive_operations: int
    elapsed_ms: float


@dataclass
class IterativeOptimizationResult:
    initial_states: list[QuantumStateVector]
    final_states: list[QuantumStateVector]
    iterations: list[OptimizationIteration] = field(default_factory=list)
    converged: bool = False
    total_improvement: float = 0.0


# =============================================================================
# OPTIMIZER
# =============================================================================

class InterferenceOptimizer:
    """Amplifies dominant patterns and suppresses redundant ones.

    Example:
        optimizer = InterferenceOptimizer()
        optimizer.load_threshold_profile("aggressive")
        result = optimizer.perform_iterative_optimization(states)
        print(result.converged, result.total_improvement)
    """

    def __init__(
        self,
        config: InterferenceConfig | None = None,
        profiles: dict[str, ThresholdProfile] | None = None,
    ):
        """Initialize optimizer.

        Args:
            config: Optimizer configuration (uses defaults if None)
            profiles: Extra named profiles merged over the built-in presets
        """
        self.config = config or InterferenceConfig()
        self._thresholds = self.config.thresholds
        self._profiles = preset_profiles()
        if profiles:
            self._profiles.update(profiles)
        self._current_profile = "default"

    # -------------------------------------------------------------------------
    # Thresholds & profiles
    # -------------------------------------------------------------------------

    @property
    def thresholds(self) -> ThresholdConfiguration:
        return self._thresholds

    def get_current_thresholds(self) -> ThresholdConfiguration:
        return self._thresholds

    def set_thresholds(self, thresholds: ThresholdConfiguration) -> None:
        self._thresholds = ThresholdConfiguration.model_validate(thresholds.model_dump())

    def create_threshold_profile(
        self,
        name: str,
        constructive_threshold: float,
        destructive_threshold: float,
        amplification_factor: float,
        suppression_factor: float,
        description: str = "",
    ) -> ThresholdProfile:
        profile = ThresholdProfile(
            name=name,
            description=description,
            constructive_threshold=constructive_threshold,
            destructive_threshold=destructive_threshold,
            amplification_factor=amplification_factor,
            suppression_factor=suppression_factor,
        )
        self._profiles[name] = profile
        return profile

    def register_profile(self, profile: ThresholdProfile) -> None:
        self._profiles[profile.name] = profile

    def load_threshold_profile(self, name: str) -> None:
        profile = self._profiles.get(name)
        if profile is None:
            raise KeyError(f"Threshold profile '{name}' not found")
        self._thresholds = profile.thresholds()
        self._current_profile = name
        logger.debug(f"Loaded threshold profile '{name}'")

    @property
    def current_profile(self) -> str:
        return self._current_profile

    def available_profiles(self) -> list[str]:
        return list(self._profiles)

    def get_profile_details(self, name: str) -> ThresholdProfile | None:
        return self._profiles.get(name)

    # -------------------------------------------------------------------------
    # Pattern-level interference
    # -------------------------------------------------------------------------

    def apply_constructive_interference(
        self,
        patterns: Sequence[PatternProbability],
    ) -> list[OptimizedPattern]:
        """Amplify patterns at or above the constructive threshold.

        Magnitudes scale by ``amplification_factor`` with phase unchanged, so
        the optimized probability is always >= the original.
        """
        factor = self._thresholds.amplification_factor
        out = [
            self._optimized(p, p.amplitude.scale(factor), "constructive", factor)
            for p in patterns
            if p.probability >= self._thresholds.constructive_threshold
        ]
        out.sort(key=lambda o: o.optimized_probability, reverse=True)
        return out

    def apply_destructive_interference(
        self,
        patterns: Sequence[PatternProbability],
    ) -> list[OptimizedPattern]:
        """Suppress patterns at or below the destructive threshold."""
        factor = self._thresholds.suppression_factor
        out = [
            self._optimized(p, p.amplitude.scale(factor), "destructive", factor)
            for p in patterns
            if p.probability <= self._thresholds.destructive_threshold
        ]
        out.sort(key=lambda o: o.optimized_probability)
        return out

    @staticmethod
    def _optimized(
        pattern: PatternProbability,
        amplitude: Complex,
        kind: InterferenceKind,
        factor: float,
    ) -> OptimizedPattern:
        optimized_probability = amplitude.magnitude_squared
        return OptimizedPattern(
            original_index=pattern.index,
            original_amplitude=pattern.amplitude,
            optimized_amplitude=amplitude,
            original_probability=pattern.probability,
            optimized_probability=optimized_probability,
            interference_type=kind,
            amplification_factor=factor,
            phase=amplitude.phase,
            magnitude=amplitude.magnitude,
            compression_value=(optimized_probability - pattern.probability) * pattern.magnitude,
        )

    # -------------------------------------------------------------------------
    # State-level interference
    # -------------------------------------------------------------------------

    def detect_interference_patterns(
        self,
        states: Sequence[QuantumStateVector],
        thresholds: ThresholdConfiguration | None = None,
        deadline: Deadline | None = None,
    ) -> list[InterferencePattern]:
        """Interference patterns between every sufficiently correlated pair."""
        thresholds = thresholds or self._thresholds
        patterns: list[InterferencePattern] = []

        for i in range(len(states) - 1):
            for j in range(i + 1, len(states)):
                check_deadline(deadline, "interference detection")
                correlation = states[i].calculate_correlation(states[j])
                if correlation <= self.config.min_pattern_correlation:
                    continue

                n = min(len(states[i]), len(states[j]))
                a = states[i].tensor[:n]
                b = states[j].tensor[:n]
                mass = 2.0 * (a.abs() ** 2 + b.abs() ** 2)
                if float(mass.sum()) == 0:
                    continue
                plus = (a + b).abs() ** 2
                share = torch.where(mass > 0, plus / mass, torch.full_like(plus, 0.5))

                constructive = float(plus.sum() / mass.sum())
                kind: InterferenceKind = "constructive" if constructive >= 0.5 else "destructive"
                strength = constructive if kind == "constructive" else 1.0 - constructive

                patterns.append(InterferencePattern(
                    kind=kind,
                    strength=strength,
                    correlation=correlation,
                    state_indices=(i, j),
                    constructive_indices=tuple(
                        int(k) for k in torch.nonzero(share >= thresholds.constructive_threshold).flatten()
                    ),
                    destructive_indices=tuple(
                        int(k) for k in torch.nonzero(share <= thresholds.destructive_threshold).flatten()
                    ),
                ))

        patterns.sort(key=lambda p: p.strength, reverse=True)
        return patterns

    def optimize_quantum_states(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
        thresholds: ThresholdConfiguration | None = None,
    ) -> StateOptimizationResult:
        """One round of detect -> amplify/suppress -> renormalize."""
        if not states:
            return StateOptimizationResult([], [], [], OptimizationMetrics())

        thresholds = thresholds or self._thresholds
        patterns = self.detect_interference_patterns(states, thresholds, deadline)
        metrics = OptimizationMetrics(total_states=len(states))

        optimized: list[QuantumStateVector] = []
        for idx, state in enumerate(states):
            relevant = [p for p in patterns if idx in p.state_indices]
            if not relevant:
                optimized.append(state.clone())
                continue

            amps = state.tensor
            for pattern in relevant:
                for k in pattern.constructive_indices:
                    amps[k] = amps[k] * thresholds.amplification_factor
                    metrics.total_amplification += thresholds.amplification_factor - 1.0
                    metrics.constructive_operations += 1
                for k in pattern.destructive_indices:
                    amps[k] = amps[k] * thresholds.suppression_factor
                    metrics.total_suppression += 1.0 - thresholds.suppression_factor
                    metrics.destructive_operations += 1

            if qmath.total_probability(amps) == 0:
                optimized.append(state.clone())
                continue
            optimized.append(state.with_amplitudes(qmath.normalize_amplitudes(amps)))

        metrics.optimized_states = len(optimized)
        if metrics.constructive_operations:
            metrics.average_amplification = metrics.total_amplification / metrics.constructive_operations
        if metrics.destructive_operations:
            metrics.average_suppression = metrics.total_suppression / metrics.destructive_operations
        metrics.compression_improvement = _entropy_improvement(states, optimized)

        return StateOptimizationResult(list(states), optimized, patterns, metrics)

    def optimize_superposition(self, sup: SuperpositionState) -> SuperpositionOptimizationResult:
        patterns = sup.analyze_probability_amplitudes()
        constructive = self.apply_constructive_interference(patterns)
        destructive = self.apply_destructive_interference(patterns)

        amps = sup.tensor
        for pattern in constructive + destructive:
            if pattern.original_index < amps.shape[0]:
                amps[pattern.original_index] = complex(pattern.optimized_amplitude)

        optimized = sup.with_amplitudes(qmath.normalize_amplitudes(amps))
        original_entropy = sup.calculate_entropy()
        improvement = (
            (original_entropy - optimized.calculate_entropy()) / original_entropy
            if original_entropy > 0 else 0.0
        )
        return SuperpositionOptimizationResult(sup, optimized, constructive, destructive, improvement)

    # -------------------------------------------------------------------------
    # Adaptive tuning
    # -------------------------------------------------------------------------

    def analyze_data_characteristics(self, states: Sequence[QuantumStateVector]) -> DataCharacteristics:
        if not states:
            return DataCharacteristics()

        distributions = [s.probability_distribution() for s in states]
        entropies = [qmath.entropy(p) for p in distributions]
        average = sum(entropies) / len(entropies)
        var = qmath.variance(entropies)

        concentration = 0.0
        for probs in distributions:
            top = max(1, int(len(probs) * 0.1))
            concentration += sum(sorted(probs, reverse=True)[:top])
        concentration /= len(distributions)

        correlations = [
            states[i].calculate_correlation(states[j])
            for i in range(len(states) - 1)
            for j in range(i + 1, len(states))
        ]
        correlation = sum(correlations) / len(correlations) if correlations else 0.0

        return DataCharacteristics(
            average_entropy=average,
            entropy_variance=var,
            probability_concentration=concentration,
            correlation_strength=correlation,
            pattern_complexity=math.sqrt(var) / (average + 0.001),
        )

    def adjust_thresholds_adaptively(
        self,
        states: Sequence[QuantumStateVector],
    ) -> ThresholdAdjustmentResult:
        """Propose thresholds from the data and apply them when adaptive mode is on.

        High entropy raises the constructive bar and lowers the destructive
        one; low entropy relaxes both. Highly concentrated distributions nudge
        the constructive threshold up a little more.
        """
        original = self._thresholds
        characteristics = self.analyze_data_characteristics(states)
        c = original.constructive_threshold
        d = original.destructive_threshold

        if characteristics.average_entropy > 0.8:
            c = min(0.9, c + 0.1)
            d = max(0.1, d - 0.1)
        elif characteristics.average_entropy < 0.3:
            c = max(0.5, c - 0.1)
            d = min(0.5, d + 0.1)
        if characteristics.probability_concentration > 0.8:
            c = min(0.9, c + 0.05)

        adjusted = ThresholdConfiguration(
            constructive_threshold=c,
            destructive_threshold=d,
            amplification_factor=original.amplification_factor,
            suppression_factor=original.suppression_factor,
        )
        delta = abs(c - original.constructive_threshold) + abs(d - original.destructive_threshold)
        improvement = min(
            0.3,
            delta * 0.1 * (1.0 - characteristics.average_entropy) * characteristics.correlation_strength,
        )

        applied = self.config.adaptive_thresholds
        if applied:
            self._thresholds = adjusted
            logger.info(
                f"Adaptive thresholds applied: constructive={c:.2f}, destructive={d:.2f}"
            )

        return ThresholdAdjustmentResult(original, adjusted, characteristics, improvement, applied)

    def optimize_thresholds_for_data_type(
        self,
        states: Sequence[QuantumStateVector],
        kind: DataType,
    ) -> DataTypeOptimizationResult:
        original = self._thresholds
        if not states:
            return DataTypeOptimizationResult(kind, original, original, 0.0, self._current_profile)

        profile = data_type_profile(kind)
        if profile.name not in self._profiles:
            self.register_profile(profile)

        characteristics = self.analyze_data_characteristics(states)
        improvement = (
            0.1
            * _DATA_TYPE_MULTIPLIERS[kind]
            * (1.0 - characteristics.average_entropy)
            * characteristics.correlation_strength
        )
        return DataTypeOptimizationResult(
            data_type=kind,
            original_thresholds=original,
            optimized_thresholds=profile.thresholds(),
            expected_improvement=improvement,
            recommended_profile=profile.name,
        )

    # -------------------------------------------------------------------------
    # Iterative optimization
    # -------------------------------------------------------------------------

    def perform_iterative_optimization(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
    ) -> IterativeOptimizationResult:
        """Repeat optimization rounds until the improvement delta settles.

        Converged when |improvement - previous| < convergence_epsilon; gives up
        after ``max_iterations`` rounds. The deadline is checked every round.
        """
        if not states:
            return IterativeOptimizationResult([], [])

        current = [s.clone() for s in states]
        result = IterativeOptimizationResult(list(states), current)
        previous = 0.0

        for round_number in range(1, self.config.max_iterations + 1):
            check_deadline(deadline, f"optimization round {round_number}")
            start = time.perf_counter()
            outcome = self.optimize_quantum_states(current, deadline)
            improvement = outcome.metrics.compression_improvement

            result.iterations.append(OptimizationIteration(
                iteration_number=round_number,
                input_states=len(current),
                output_states=len(outcome.optimized_states),
                compression_improvement=improvement,
                constructive_operations=outcome.metrics.constructive_operations,
                destructive_operations=outcome.metrics.destructive_operations,
                elapsed_ms=(time.perf_counter() - start) * 1000,
            ))
            logger.debug(f"Round {round_number}: improvement={improvement:.6f}")

            if abs(improvement - previous) < self.config.convergence_epsilon:
                result.converged = True
                break
            current = outcome.optimized_states
            previous = improvement

        result.final_states = current
        result.total_improvement = sum(it.compression_improvement for it in result.iterations)
        return result

    def optimize_for_minimal_representation(
        self,
        states: Sequence[QuantumStateVector],
        deadline: Deadline | None = None,
    ) -> MinimalRepresentationResult:
        """Progressively relax thresholds until the information ratio hits target."""
        if not states:
            return MinimalRepresentationResult([], [], 1.0, 0.0, QualityMetrics(), 0)

        original = [s.clone() for s in states]
        current = [s.clone() for s in states]
        best = current
        best_ratio = 1.0
        target = self.config.minimal_representation_target
        rounds = 0

        while rounds < MAX_MINIMAL_REPRESENTATION_ROUNDS:
            check_deadline(deadline, f"minimal representation round {rounds + 1}")
            progress = min(1.0, rounds / 10)
            stepped = ThresholdConfiguration(
                constructive_threshold=max(0.5, self._thresholds.constructive_threshold - progress * 0.1),
                destructive_threshold=min(0.5, self._thresholds.destructive_threshold + progress * 0.1),
                amplification_factor=self._thresholds.amplification_factor,
                suppression_factor=self._thresholds.suppression_factor,
            )
            outcome = self.optimize_quantum_states(current, deadline, thresholds=stepped)
            current = outcome.optimized_states
            rounds += 1

            ratio = _representation_ratio(original, current)
            if ratio <= target or ratio < best_ratio:
                best, best_ratio = current, ratio
                if ratio <= target:
                    break
            if outcome.metrics.compression_improvement < self.config.convergence_epsilon:
                break

        return MinimalRepresentationResult(
            original_states=original,
            minimal_states=best,
            representation_ratio=best_ratio,
            compression_achieved=1.0 - best_ratio,
            quality_metrics=_quality_metrics(original, best),
            rounds=rounds,
        )


# =============================================================================
# HELPERS
# =============================================================================

def _average_entropy(states: Sequence[QuantumStateVector]) -> float:
    if not states:
        return 0.0
    return sum(qmath.entropy(s.probability_distribution()) for s in states) / len(states)


def _entropy_improvement(
    original: Sequence[QuantumStateVector],
    optimized: Sequence[QuantumStateVector],
) -> float:
    before = _average_entropy(original)
    if before <= 0 or not optimized:
        return 0.0
    return (before - _average_entropy(optimized)) / before


def _total_information(states: Sequence[QuantumStateVector]) -> float:
    return sum(qmath.entropy(s.probability_distribution()) * len(s) for s in states)


def _representation_ratio(
    original: Sequence[QuantumStateVector],
    optimized: Sequence[QuantumStateVector],
) -> float:
    before = _total_information(original)
    if before <= 0 or not optimized:
        return 1.0
    return _total_information(optimized) / before


def _quality_metrics(
    original: Sequence[QuantumStateVector],
    optimized: Sequence[QuantumStateVector],
) -> QualityMetrics:
    if not original or not optimized:
        return QualityMetrics()

    n = min(len(original), len(optimized))
    fidelity = sum(original[i].calculate_correlation(optimized[i]) for i in range(n)) / n

    before = _average_entropy(original)
    preservation = _average_entropy(optimized) / before if before > 0 else 1.0
    ratio = _representation_ratio(original, optimized)
    efficiency = (1.0 - ratio) / (1.0 - preservation + 0.001) if ratio < 1.0 else 0.0

    return QualityMetrics(
        fidelity=fidelity,
        information_preservation=preservation,
        compression_efficiency=efficiency,
        overall_quality=(fidelity + preservation + efficiency) / 3.0,
    )
