"""
tests/test_engine.py - Compression facade and container format

Verifies:
    - compress/decompress round trip for empty, repetitive and noisy input
    - Strategy choice (stored vs run-length) follows entropy and payload size
    - Malformed containers raise ContainerFormatError
    - An expired analysis deadline degrades instead of failing
    - Tampered payloads fail checksum verification without raising
    - Parameter tuning by size band and content kind
"""
import json

import pytest

from quantumflow import compress, decompress
from quantumflow.engine import (
    HEADER_PREFIX,
    MAGIC,
    QuantumCompressionEngine,
)
from quantumflow.exceptions import ContainerFormatError
from quantumflow.types import QuantumConfig


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    return QuantumCompressionEngine()


@pytest.fixture
def repetitive():
    return b"a" * 400 + b"b" * 300 + b"c" * 300


@pytest.fixture
def noisy():
    return bytes(range(256)) * 4


def _header(blob: bytes) -> dict:
    _, length = HEADER_PREFIX.unpack_from(blob)
    return json.loads(blob[HEADER_PREFIX.size:HEADER_PREFIX.size + length])


# =============================================================================
# ROUND TRIP
# =============================================================================

class TestRoundTrip:
    def test_empty(self, engine):
        blob = engine.compress(b"")
        assert engine.decompress(blob) == b""
        assert _header(blob)["strategy"] == "stored"

    def test_repetitive_uses_run_length(self, engine, repetitive):
        blob = engine.compress(repetitive)
        header = _header(blob)

        assert header["strategy"] == "run-length"
        assert header["original_size"] == len(repetitive)
        assert not header["degraded"]
        assert engine.decompress(blob) == repetitive
        assert len(blob) < len(repetitive)

    def test_noisy_is_stored(self, engine, noisy):
        blob = engine.compress(noisy)
        assert _header(blob)["strategy"] == "stored"
        assert engine.decompress(blob) == noisy

    def test_incompressible_short_input_stored(self, engine):
        blob = engine.compress(b"abcdefgh")
        assert _header(blob)["strategy"] == "stored"
        assert engine.decompress(blob) == b"abcdefgh"

    def test_metrics_recorded(self, engine, repetitive):
        metrics = _header(engine.compress(repetitive))["metrics"]
        assert metrics["states"] > 0
        assert metrics["chunk_size"] == QuantumConfig().chunk_size
        assert metrics["threshold_profile"] == "default"
        assert "entangled_pairs" in metrics

    def test_module_level_functions(self, repetitive):
        assert decompress(compress(repetitive)) == repetitive

    @pytest.mark.parametrize("factory", [
        QuantumConfig.for_text_compression,
        QuantumConfig.for_binary_compression,
        QuantumConfig.for_low_resource,
    ])
    def test_presets(self, engine, factory, repetitive):
        config = factory()
        blob = engine.compress(repetitive, config)
        header = _header(blob)
        assert header["metrics"]["threshold_profile"] == config.profile_name
        assert header["config"]["profile_name"] == config.profile_name
        assert engine.decompress(blob) == repetitive

    def test_unknown_profile_raises(self, engine, repetitive):
        with pytest.raises(KeyError):
            engine.compress(repetitive, QuantumConfig(profile_name="missing"))

    def test_builtin_yaml_profile_usable(self, engine, repetitive):
        config = QuantumConfig(profile_name="archival")
        assert engine.decompress(engine.compress(repetitive, config)) == repetitive


# =============================================================================
# VERIFICATION
# =============================================================================

class TestVerification:
    def test_valid_container(self, engine, repetitive):
        result = engine.decompress_with_verification(engine.compress(repetitive))
        assert result.is_valid
        assert result.strategy == "run-length"
        assert engine.stats["checksum_failures"] == 0

    def test_tampered_payload(self, engine, noisy):
        blob = engine.compress(noisy)
        tampered = blob[:-1] + bytes([blob[-1] ^ 0xFF])

        result = engine.decompress_with_verification(tampered)
        assert not result.is_valid
        assert result.verification.corruption_type == "content-corruption"
        assert engine.stats["checksum_failures"] == 1

    def test_stats(self, engine, repetitive):
        engine.decompress(engine.compress(repetitive))
        engine.compress(b"xyz")
        assert engine.stats == {
            "compressed": 2,
            "degraded": 0,
            "decompressed": 1,
            "checksum_failures": 0,
        }


# =============================================================================
# DEGRADATION
# =============================================================================

class TestDegradation:
    def test_expired_deadline_degrades(self, repetitive):
        engine = QuantumCompressionEngine(deadline_seconds=1e-9)
        blob = engine.compress(repetitive)
        header = _header(blob)

        assert header["degraded"]
        assert header["strategy"] == "simple-classical"
        assert "exceeded" in header["metrics"]["failure_reason"]
        assert engine.stats["degraded"] == 1

        result = engine.decompress_with_verification(blob)
        assert result.degraded
        assert result.is_valid
        assert result.data == repetitive


# =============================================================================
# CONTAINER ERRORS
# =============================================================================

class TestContainerErrors:
    def test_too_short(self, engine):
        with pytest.raises(ContainerFormatError, match="too short"):
            engine.decompress(b"QF")

    def test_bad_magic(self, engine, repetitive):
        blob = engine.compress(repetitive)
        with pytest.raises(ContainerFormatError, match="magic"):
            engine.decompress(b"XXXX" + blob[4:])

    def test_header_overrun(self, engine):
        blob = HEADER_PREFIX.pack(MAGIC, 1000) + b"{}"
        with pytest.raises(ContainerFormatError, match="exceeds"):
            engine.decompress(blob)

    def test_unreadable_header(self, engine):
        raw = b"{not json"
        with pytest.raises(ContainerFormatError, match="Unreadable"):
            engine.decompress(HEADER_PREFIX.pack(MAGIC, len(raw)) + raw)

    def test_missing_fields(self, engine):
        raw = json.dumps({"version": 1}).encode()
        with pytest.raises(ContainerFormatError, match="missing"):
            engine.decompress(HEADER_PREFIX.pack(MAGIC, len(raw)) + raw)

    def test_corrupt_run_length_payload(self, engine, repetitive):
        blob = engine.compress(repetitive)
        with pytest.raises(ContainerFormatError, match="run-length"):
            engine.decompress(blob + b"\x01")

    def test_unknown_strategy(self, engine):
        raw = json.dumps({"strategy": "mystery", "checksum": {}}).encode()
        with pytest.raises(ContainerFormatError):
            engine.decompress(HEADER_PREFIX.pack(MAGIC, len(raw)) + raw)


# =============================================================================
# PARAMETER TUNING
# =============================================================================

class TestParameterTuning:
    @pytest.mark.parametrize("size,expected", [
        (0, (6, 3, 2, 0.5)),
        (1023, (6, 3, 2, 0.5)),
        (1024, (4, 4, 2, 0.6)),
        (10 * 1024, (3, 2, 1, 0.7)),
        (100 * 1024 - 1, (3, 2, 1, 0.7)),
        (100 * 1024, (2, 1, 1, 0.8)),
    ])
    def test_size_bands(self, size, expected):
        config = QuantumCompressionEngine.optimize_quantum_parameters(size)
        assert (
            config.quantum_bit_depth,
            config.superposition_complexity,
            config.max_entanglement_level,
            config.interference_threshold,
        ) == (expected[0], expected[1], expected[2], pytest.approx(expected[3]))

    @pytest.mark.parametrize("data_type,size,expected", [
        # (bit depth, complexity, entanglement, threshold)
        ("text", 500, (6, 3, 3, 0.4)),
        ("text", 5000, (4, 4, 2, 0.5)),
        ("text", 500_000, (2, 1, 1, 0.7)),
        ("structured", 500, (6, 4, 2, 0.3)),
        ("structured", 5000, (4, 4, 2, 0.4)),
        ("structured", 50_000, (3, 3, 1, 0.5)),
        ("random", 500, (6, 1, 1, 0.9)),
        ("random", 500_000, (2, 1, 1, 0.9)),
        ("binary", 5000, (4, 4, 2, 0.6)),
    ])
    def test_data_types(self, data_type, size, expected):
        config = QuantumCompressionEngine.optimize_quantum_parameters(size, data_type)
        assert config.quantum_bit_depth == expected[0]
        assert config.superposition_complexity == expected[1]
        assert config.max_entanglement_level == expected[2]
        assert config.interference_threshold == pytest.approx(expected[3])

    @pytest.mark.parametrize("data_type", ["text", "binary", "structured", "random"])
    @pytest.mark.parametrize("size", [10, 4096, 50_000, 1_000_000])
    def test_entanglement_within_half_bit_depth(self, size, data_type):
        config = QuantumCompressionEngine.optimize_quantum_parameters(size, data_type)
        assert config.max_entanglement_level <= config.quantum_bit_depth // 2
        assert config.superposition_complexity <= config.quantum_bit_depth

    def test_tuned_config_compresses(self, engine, repetitive):
        config = engine.optimize_quantum_parameters(len(repetitive), "text")
        blob = engine.compress(repetitive, config)
        assert _header(blob)["config"]["quantum_bit_depth"] == config.quantum_bit_depth
        assert engine.decompress(blob) == repetitive

    def test_interference_threshold_gates_patterns(self, engine, repetitive):
        strict = _header(engine.compress(repetitive, QuantumConfig(interference_threshold=0.9)))
        loose = _header(engine.compress(repetitive, QuantumConfig(interference_threshold=0.1)))

        # 0.63 probability admits at most one basis pattern
        assert strict["metrics"]["significant_patterns"] <= 1
        assert loose["metrics"]["significant_patterns"] >= strict["metrics"]["significant_patterns"]
