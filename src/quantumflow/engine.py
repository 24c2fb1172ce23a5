"""
quantumflow/engine.py - Compression facade

Wraps the state-vector layers behind a byte-in, byte-out API. The quantum
path (superposition, entanglement and interference analysis over a bounded
sample) decides the payload strategy and records metrics; the payload itself
is stored classically so decompression is exact.

Container Layout:
    MAGIC b"QFC1" | uint32 header length (big endian) | JSON header | payload

Header fields:
    version, strategy, original_size, degraded, checksum, metrics, config

Usage:
    from quantumflow import compress, decompress

    blob = compress(b"aaaaabbbbbcccccc")
    assert decompress(blob) == b"aaaaabbbbbcccccc"

    engine = QuantumCompressionEngine(QuantumConfig.for_text_compression(),
                                      deadline_seconds=0.5)
    result = engine.decompress_with_verification(engine.compress(data))
    print(result.verification.integrity_score)
"""

from __future__ import annotations

import json
import logging
import struct
import time
from dataclasses import dataclass, field
from typing import Any

from . import degradation, qmath
from .batch import Deadline
from .checksum import (
    ChecksumVerification,
    QuantumChecksum,
    generate_quantum_checksum,
    verify_quantum_checksum,
)
from .entanglement import EntanglementAnalyzer
from .exceptions import ContainerFormatError, QuantumFlowError
from .interference import InterferenceOptimizer
from .loader import ProfileLoader
from .state import chunk_bytes
from .superposition import SuperpositionProcessor
from .types import (
    ContentKind,
    EntanglementConfig,
    GracefulDegradationOptions,
    InterferenceConfig,
    QuantumConfig,
    SuperpositionConfig,
)

logger = logging.getLogger(__name__)

MAGIC = b"QFC1"
CONTAINER_VERSION = 1
HEADER_PREFIX = struct.Struct(">4sI")

# Analysis runs on a bounded prefix; payload coding always covers all bytes
ANALYSIS_SAMPLE_BYTES = 4096
ENTANGLEMENT_SAMPLE_STATES = 32
STORE_ENTROPY = 7.5
PATTERN_THRESHOLD_SCALE = 0.7

# (upper size bound, bit depth, superposition complexity, entanglement, threshold)
SIZE_BANDS = (
    (1024, 6, 3, 2, 0.5),
    (10 * 1024, 4, 4, 2, 0.6),
    (100 * 1024, 3, 2, 1, 0.7),
    (None, 2, 1, 1, 0.8),
)

STRATEGY_STORED = "stored"
STRATEGY_RUN_LENGTH = "run-length"


@dataclass
class DecompressionResult:
    data: bytes
    verification: ChecksumVerification
    strategy: str = STRATEGY_STORED
    degraded: bool = False
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.verification.is_valid


class QuantumCompressionEngine:
    """Byte compression driven by quantum-inspired analysis.

    Args:
        config: Engine configuration (defaults to QuantumConfig())
        deadline_seconds: Optional wall-clock budget for the analysis of a
            single ``compress`` call; on expiry the call degrades to a
            classical strategy instead of failing.
    """

    def __init__(
        self,
        config: QuantumConfig | None = None,
        deadline_seconds: float | None = None,
        degradation_options: GracefulDegradationOptions | None = None,
    ):
        self.config = config or QuantumConfig()
        self.deadline_seconds = deadline_seconds
        self.degradation_options = degradation_options or GracefulDegradationOptions()

        loader = ProfileLoader()
        loader.load_builtin()
        self._profiles = dict(loader.profiles)

        self._stats = {
            "compressed": 0,
            "degraded": 0,
            "decompressed": 0,
            "checksum_failures": 0,
        }

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    # =========================================================================
    # PARAMETER TUNING
    # =========================================================================

    @staticmethod
    def optimize_quantum_parameters(
        data_size: int,
        data_type: ContentKind = "binary",
    ) -> QuantumConfig:
        """Pick a configuration for ``data_size`` bytes of ``data_type`` content.

        Larger inputs get shallower states and simpler superpositions. Text
        gains one entanglement level and a lower threshold, structured data
        one level of superposition complexity, random data the minimum
        complexity with a 0.9 threshold. Entanglement never exceeds half the
        bit depth and complexity never exceeds the bit depth.
        """
        for limit, depth, complexity, entanglement, threshold in SIZE_BANDS:
            if limit is None or data_size < limit:
                break

        max_entanglement = depth // 2
        if data_type == "text":
            entanglement = min(entanglement + 1, max_entanglement, 4)
            threshold = max(threshold - 0.1, 0.3)
        elif data_type == "structured":
            complexity = min(complexity + 1, 5, depth)
            threshold = max(threshold - 0.2, 0.3)
        elif data_type == "random":
            complexity = 1
            entanglement = 1
            threshold = 0.9
        entanglement = min(entanglement, max_entanglement)

        config = QuantumConfig(
            quantum_bit_depth=depth,
            max_entanglement_level=entanglement,
            superposition_complexity=complexity,
            interference_threshold=round(threshold, 2),
        )
        logger.debug(f"Tuned config for {data_size} bytes of {data_type}: {config.model_dump()}")
        return config

    # =========================================================================
    # COMPRESS
    # =========================================================================

    def compress(self, data: bytes, config: QuantumConfig | None = None) -> bytes:
        data = bytes(data)
        config = config or self.config
        start = time.perf_counter()
        checksum = generate_quantum_checksum(data)
        optimizer = self._build_optimizer(config)

        degraded = False
        try:
            deadline = Deadline(self.deadline_seconds) if self.deadline_seconds else None
            metrics = self._analyze(data, config, optimizer, deadline)
            strategy, payload = self._encode_payload(data, metrics)
        except QuantumFlowError as e:
            logger.warning(f"Quantum path failed, degrading: {e}")
            fallback = degradation.attempt_graceful_degradation(
                data, str(e), self.degradation_options
            )
            if fallback.fallback_strategy == degradation.FallbackStrategy.FAST_CLASSICAL:
                # lossy output cannot live in a container
                fallback = degradation.attempt_graceful_degradation(
                    data, str(e), self.degradation_options.model_copy(update={"prioritize_speed": False})
                )
            strategy = fallback.fallback_strategy.value
            payload = fallback.compressed_data
            metrics = {"failure_reason": str(e), "fallback": fallback.to_dict()}
            degraded = True
            self._stats["degraded"] += 1

        header = {
            "version": CONTAINER_VERSION,
            "strategy": strategy,
            "original_size": len(data),
            "degraded": degraded,
            "checksum": checksum.to_dict(),
            "metrics": metrics,
            "config": config.model_dump(),
        }
        blob = self._write_container(header, payload)
        self._stats["compressed"] += 1

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            f"Compressed {len(data)} -> {len(blob)} bytes via {strategy} in {elapsed:.1f}ms"
        )
        return blob

    def _build_optimizer(self, config: QuantumConfig) -> InterferenceOptimizer:
        optimizer = InterferenceOptimizer(
            InterferenceConfig(max_iterations=max(1, config.superposition_complexity)),
            profiles=self._profiles,
        )
        if config.profile_name:
            optimizer.load_threshold_profile(config.profile_name)
        return optimizer

    def _analyze(
        self,
        data: bytes,
        config: QuantumConfig,
        optimizer: InterferenceOptimizer,
        deadline: Deadline | None,
    ) -> dict[str, Any]:
        """Run the state-vector layers over a sample of ``data``."""
        entropy = qmath.data_entropy(data)
        if not data:
            return {"states": 0, "data_entropy": 0.0}

        sample = data[:ANALYSIS_SAMPLE_BYTES]
        states = chunk_bytes(sample, config.chunk_size)

        processor = SuperpositionProcessor(SuperpositionConfig(
            max_superposition_size=max(2, min(64, config.superposition_complexity * 2)),
            pattern_threshold=config.interference_threshold * PATTERN_THRESHOLD_SCALE,
        ))
        superposition = processor.create_superposition(states)

        analyzer = EntanglementAnalyzer(EntanglementConfig(
            min_correlation_threshold=config.interference_threshold,
            max_entanglement_pairs=config.max_entanglement_level * 4,
        ))
        pairs = analyzer.find_entangled_patterns(states[:ENTANGLEMENT_SAMPLE_STATES], deadline)

        iterative = optimizer.perform_iterative_optimization(
            states[:ENTANGLEMENT_SAMPLE_STATES], deadline
        )

        metrics = {
            "states": len(states),
            "chunk_size": config.chunk_size,
            "data_entropy": round(entropy, 6),
            "superposition_entropy": round(superposition.calculate_entropy(), 6),
            "dominant_patterns": len(superposition.get_dominant_patterns()),
            "significant_patterns": len(processor.analyze_probability_amplitudes(superposition)),
            "entangled_pairs": len(pairs),
            "compression_benefit": round(sum(p.get_compression_benefit() for p in pairs), 6),
            "interference_iterations": len(iterative.iterations),
            "interference_converged": iterative.converged,
            "interference_improvement": round(iterative.total_improvement, 6),
            "threshold_profile": optimizer.current_profile,
        }
        logger.debug(f"Analysis metrics: {metrics}")
        return metrics

    @staticmethod
    def _encode_payload(data: bytes, metrics: dict[str, Any]) -> tuple[str, bytes]:
        if metrics.get("data_entropy", 0.0) > STORE_ENTROPY:
            return STRATEGY_STORED, data
        encoded = degradation.rle_encode(data)
        if len(encoded) >= len(data):
            return STRATEGY_STORED, data
        return STRATEGY_RUN_LENGTH, encoded

    @staticmethod
    def _write_container(header: dict[str, Any], payload: bytes) -> bytes:
        raw = json.dumps(header, sort_keys=True).encode("utf-8")
        return HEADER_PREFIX.pack(MAGIC, len(raw)) + raw + payload

    # =========================================================================
    # DECOMPRESS
    # =========================================================================

    def decompress(self, blob: bytes) -> bytes:
        return self.decompress_with_verification(blob).data

    def decompress_with_verification(self, blob: bytes) -> DecompressionResult:
        """Decode a container and verify it against its stored checksum.

        Raises:
            ContainerFormatError: if the container is malformed
        """
        header, payload = self._read_container(bytes(blob))
        strategy = header["strategy"]

        try:
            if strategy == STRATEGY_STORED:
                data = payload
            elif strategy == STRATEGY_RUN_LENGTH:
                data = degradation.rle_decode(payload)
            else:
                data = degradation.decode_fallback_payload(strategy, payload)
        except ValueError as e:
            raise ContainerFormatError(f"Cannot decode '{strategy}' payload: {e}") from e

        try:
            expected = QuantumChecksum.from_dict(header["checksum"])
        except (KeyError, TypeError, ValueError) as e:
            raise ContainerFormatError(f"Invalid checksum record: {e}") from e

        verification = verify_quantum_checksum(data, expected)
        self._stats["decompressed"] += 1
        if not verification.is_valid:
            self._stats["checksum_failures"] += 1
            logger.warning(
                f"Checksum verification failed after decompression "
                f"({verification.corruption_type}, score={verification.integrity_score:.2f})"
            )

        return DecompressionResult(
            data=data,
            verification=verification,
            strategy=strategy,
            degraded=bool(header.get("degraded", False)),
            metrics=header.get("metrics", {}),
        )

    @staticmethod
    def _read_container(blob: bytes) -> tuple[dict[str, Any], bytes]:
        if len(blob) < HEADER_PREFIX.size:
            raise ContainerFormatError("Container too short")
        magic, header_len = HEADER_PREFIX.unpack_from(blob)
        if magic != MAGIC:
            raise ContainerFormatError(f"Bad magic {magic!r}")
        end = HEADER_PREFIX.size + header_len
        if end > len(blob):
            raise ContainerFormatError("Header length exceeds container size")

        try:
            header = json.loads(blob[HEADER_PREFIX.size:end].decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ContainerFormatError(f"Unreadable header: {e}") from e
        if not isinstance(header, dict) or "strategy" not in header or "checksum" not in header:
            raise ContainerFormatError("Header is missing required fields")
        return header, blob[end:]


def compress(data: bytes, config: QuantumConfig | None = None) -> bytes:
    return QuantumCompressionEngine(config).compress(data)


def decompress(blob: bytes) -> bytes:
    return QuantumCompressionEngine().decompress(blob)
