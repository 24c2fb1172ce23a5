"""
tests/test_types.py - Configuration models

Verifies:
    - Field ranges raise pydantic ValidationError
    - Cross-field rules on QuantumConfig
    - Presets are valid and name registered threshold profiles
    - JSON round trip and frozen models
"""
import pytest
from pydantic import ValidationError

from quantumflow.interference import preset_profiles
from quantumflow.types import (
    ErrorCorrectionConfig,
    InterferenceConfig,
    QuantumChecksumOptions,
    QuantumConfig,
    SuperpositionConfig,
    ThresholdConfiguration,
    ThresholdProfile,
)


class TestQuantumConfig:
    def test_defaults(self):
        config = QuantumConfig()
        assert config.quantum_bit_depth == 8
        assert config.max_entanglement_level == 4
        assert config.superposition_complexity == 5
        assert config.interference_threshold == 0.5
        assert config.chunk_size == 4

    @pytest.mark.parametrize("field,value", [
        ("quantum_bit_depth", 1),
        ("quantum_bit_depth", 17),
        ("interference_threshold", 0.05),
        ("interference_threshold", 0.95),
    ])
    def test_range_violations(self, field, value):
        with pytest.raises(ValidationError):
            QuantumConfig(**{field: value})

    def test_entanglement_bounded_by_bit_depth(self):
        with pytest.raises(ValidationError):
            QuantumConfig(quantum_bit_depth=4, max_entanglement_level=3, superposition_complexity=3)

    def test_complexity_bounded_by_bit_depth(self):
        with pytest.raises(ValidationError):
            QuantumConfig(quantum_bit_depth=4, max_entanglement_level=2, superposition_complexity=5)

    def test_chunk_size_has_floor(self):
        config = QuantumConfig(quantum_bit_depth=2, max_entanglement_level=1, superposition_complexity=1)
        assert config.chunk_size == 2

    @pytest.mark.parametrize("factory", [
        QuantumConfig.for_text_compression,
        QuantumConfig.for_binary_compression,
        QuantumConfig.for_image_compression,
        QuantumConfig.for_high_performance,
        QuantumConfig.for_low_resource,
    ])
    def test_presets_name_known_profiles(self, factory):
        config = factory()
        assert config.profile_name in preset_profiles()

    def test_json_round_trip(self):
        config = QuantumConfig.for_image_compression()
        assert QuantumConfig.from_json(config.to_json()) == config

    def test_frozen(self):
        config = QuantumConfig()
        with pytest.raises(ValidationError):
            config.quantum_bit_depth = 4


class TestLayerConfigs:
    def test_superposition_ranges(self):
        with pytest.raises(ValidationError):
            SuperpositionConfig(max_superposition_size=1)

    def test_threshold_ranges(self):
        with pytest.raises(ValidationError):
            ThresholdConfiguration(amplification_factor=1.0)
        with pytest.raises(ValidationError):
            ThresholdConfiguration(destructive_threshold=1.0)
        with pytest.raises(ValidationError):
            ThresholdConfiguration(constructive_threshold=0.0)

    def test_profile_thresholds_strip_name(self):
        profile = ThresholdProfile(name="custom", constructive_threshold=0.9)
        thresholds = profile.thresholds()
        assert type(thresholds) is ThresholdConfiguration
        assert thresholds.constructive_threshold == 0.9

    def test_interference_defaults(self):
        config = InterferenceConfig()
        assert config.max_iterations == 10
        assert config.adaptive_thresholds is False
        assert config.convergence_epsilon == pytest.approx(1e-3)

    def test_error_correction_attempt_bounds(self):
        with pytest.raises(ValidationError):
            ErrorCorrectionConfig(max_correction_attempts=0)
        with pytest.raises(ValidationError):
            ErrorCorrectionConfig(max_correction_attempts=11)

    def test_checksum_length_rounded_even(self):
        assert QuantumChecksumOptions(checksum_length=9).checksum_length == 10
        with pytest.raises(ValidationError):
            QuantumChecksumOptions(checksum_length=4)
