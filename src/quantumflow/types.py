"""
quantumflow/types.py - Pydantic configuration models

Uses Pydantic v2 for validation. Every tunable of the compression core is a
frozen model; out-of-range values raise ``pydantic.ValidationError`` at
construction so misconfiguration fails fast.
"""
from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DataType = Literal["text", "binary", "image", "audio", "mixed"]
InterferenceKind = Literal["constructive", "destructive"]
ContentKind = Literal["text", "binary", "structured", "random"]


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

class QuantumConfig(BaseModel):
    """Top-level configuration consumed by the compression facade."""

    quantum_bit_depth: int = Field(
        default=8,
        ge=2,
        le=16,
        description="Bits of amplitude resolution; also sets the state chunk size"
    )
    max_entanglement_level: int = Field(
        default=4,
        ge=1,
        le=8,
        description="Upper bound on entanglement pairs per analysis sample"
    )
    superposition_complexity: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Controls how many states are superposed per group"
    )
    interference_threshold: float = Field(
        default=0.5,
        ge=0.1,
        le=0.9,
        description=(
            "Analysis gate: superposition patterns need 0.7x this probability, "
            "entangled pairs need this correlation"
        )
    )
    profile_name: str | None = Field(
        default=None,
        description="Optional named threshold profile"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_combination(self) -> QuantumConfig:
        if self.max_entanglement_level > self.quantum_bit_depth // 2:
            raise ValueError(
                "max_entanglement_level cannot exceed half of quantum_bit_depth"
            )
        if self.superposition_complexity > self.quantum_bit_depth:
            raise ValueError(
                "superposition_complexity cannot exceed quantum_bit_depth"
            )
        return self

    @property
    def chunk_size(self) -> int:
        """Bytes per state vector."""
        return max(2, self.quantum_bit_depth // 2)

    @classmethod
    def for_text_compression(cls) -> QuantumConfig:
        return cls(
            quantum_bit_depth=6,
            max_entanglement_level=3,
            superposition_complexity=4,
            interference_threshold=0.4,
            profile_name="text-optimized",
        )

    @classmethod
    def for_binary_compression(cls) -> QuantumConfig:
        return cls(
            quantum_bit_depth=8,
            max_entanglement_level=4,
            superposition_complexity=6,
            interference_threshold=0.6,
            profile_name="binary-optimized",
        )

    @classmethod
    def for_image_compression(cls) -> QuantumConfig:
        return cls(
            quantum_bit_depth=10,
            max_entanglement_level=5,
            superposition_complexity=7,
            interference_threshold=0.7,
            profile_name="image-optimized",
        )

    @classmethod
    def for_high_performance(cls) -> QuantumConfig:
        return cls(
            quantum_bit_depth=12,
            max_entanglement_level=6,
            superposition_complexity=8,
            interference_threshold=0.8,
            profile_name="aggressive",
        )

    @classmethod
    def for_low_resource(cls) -> QuantumConfig:
        return cls(
            quantum_bit_depth=4,
            max_entanglement_level=2,
            superposition_complexity=3,
            interference_threshold=0.3,
            profile_name="conservative",
        )

    def to_json(self) -> str:
        return json.dumps(self.model_dump())

    @classmethod
    def from_json(cls, raw: str) -> QuantumConfig:
        return cls.model_validate(json.loads(raw))


# =============================================================================
# LAYER CONFIGURATION
# =============================================================================

class SuperpositionConfig(BaseModel):
    """Configuration for the superposition processor."""

    max_superposition_size: int = Field(default=16, ge=2, le=64)
    coherence_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    pattern_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    parallelism_factor: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Worker count for group-level parallel processing"
    )

    model_config = {"frozen": True}


class EntanglementConfig(BaseModel):
    """Configuration for the entanglement analyzer."""

    min_correlation_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_entanglement_pairs: int = Field(default=100, ge=1)
    max_workers: int = Field(default=4, ge=1, le=16)

    model_config = {"frozen": True}


class ThresholdConfiguration(BaseModel):
    """Active interference thresholds."""

    constructive_threshold: float = Field(default=0.7, gt=0.0, le=1.0)
    destructive_threshold: float = Field(default=0.3, ge=0.0, lt=1.0)
    amplification_factor: float = Field(default=1.5, gt=1.0)
    suppression_factor: float = Field(default=0.1, ge=0.0, lt=1.0)

    model_config = {"frozen": True}


class ThresholdProfile(ThresholdConfiguration):
    """Named bundle of interference thresholds."""

    name: str = Field(..., min_length=1)
    description: str = ""

    def thresholds(self) -> ThresholdConfiguration:
        return ThresholdConfiguration(
            constructive_threshold=self.constructive_threshold,
            destructive_threshold=self.destructive_threshold,
            amplification_factor=self.amplification_factor,
            suppression_factor=self.suppression_factor,
        )


class InterferenceConfig(BaseModel):
    """Configuration for the interference optimizer."""

    thresholds: ThresholdConfiguration = Field(default_factory=ThresholdConfiguration)
    max_iterations: int = Field(default=10, ge=1, le=100)
    adaptive_thresholds: bool = False
    minimal_representation_target: float = Field(default=0.8, gt=0.0, le=1.0)
    convergence_epsilon: float = Field(default=1e-3, gt=0.0)
    min_pattern_correlation: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Pairs below this correlation never interfere"
    )

    model_config = {"frozen": True}


class ErrorCorrectionConfig(BaseModel):
    """Configuration for redundancy encoding and correction sessions."""

    error_threshold: float = Field(default=0.01, ge=0.0, le=1.0)
    correction_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    max_correction_attempts: int = Field(default=3, ge=1, le=10)

    model_config = {"frozen": True}


class GracefulDegradationOptions(BaseModel):
    """Knobs for classical fallback selection."""

    max_retries: int = Field(default=3, ge=0)
    fallback_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    preserve_metadata: bool = False
    prioritize_speed: bool = False

    model_config = {"frozen": True}


class QuantumChecksumOptions(BaseModel):
    """Which sub-checksums to compute and how long the result is."""

    include_phase: bool = True
    include_probability: bool = True
    checksum_length: int = Field(default=32, ge=8, le=64)

    model_config = {"frozen": True}

    @field_validator("checksum_length")
    @classmethod
    def validate_even_length(cls, v: int) -> int:
        """Round odd lengths up so the hex digest stays byte aligned."""
        return v + (v % 2)
