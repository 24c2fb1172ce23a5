"""
quantumflow/degradation.py - Classical fallbacks when the quantum path fails

Strategy Selection (first match wins):
    1. preserve_metadata                -> classical-with-quantum-metadata
    2. memory / resource failure        -> chunked-classical
    3. timeout / performance failure    -> fast-classical if prioritize_speed,
                                           else simple-classical
    4. quantum / state failure          -> hybrid-compression if entropy > 7,
                                           else simple-classical
    5. otherwise by size and entropy    -> < 1 KiB simple, > 2 MiB chunked,
                                           entropy > 6 hybrid, else metadata

Payload Formats:
    simple-classical                 RLE: (count <= 255, byte) pairs
    chunked-classical                repeated [uint32 length | RLE(64 KiB chunk)]
    hybrid-compression               uint32 length | RLE(phase-delta(head)) | RLE(tail)
    classical-with-quantum-metadata  uint32 length | JSON metadata | RLE(data)
    fast-classical                   consecutive duplicates removed (lossy)
    uncompressed                     data as-is

Every strategy except fast-classical has a decoder in
``decode_fallback_payload``.
"""
from __future__ import annotations

import enum
import json
import logging
import struct
import time
from dataclasses import dataclass, field

from . import qmath
from .types import GracefulDegradationOptions

logger = logging.getLogger(__name__)

SMALL_INPUT = 1024
LARGE_INPUT = 2 * 1024 * 1024
CHUNK_SIZE = 64 * 1024
QUANTUM_HEAD_LIMIT = 1024
QUANTUM_HEAD_FRACTION = 0.1

_MEMORY_KEYWORDS = ("memory", "resource")
_TIMEOUT_KEYWORDS = ("timeout", "deadline", "performance")
_QUANTUM_KEYWORDS = ("quantum", "state")


class FallbackStrategy(str, enum.Enum):
    SIMPLE_CLASSICAL = "simple-classical"
    CHUNKED_CLASSICAL = "chunked-classical"
    HYBRID_COMPRESSION = "hybrid-compression"
    CLASSICAL_WITH_METADATA = "classical-with-quantum-metadata"
    FAST_CLASSICAL = "fast-classical"
    UNCOMPRESSED = "uncompressed"


_RECOMMENDED_ACTIONS = {
    FallbackStrategy.SIMPLE_CLASSICAL: "Retry quantum compression with a smaller bit depth",
    FallbackStrategy.CHUNKED_CLASSICAL: "Reduce input size or raise the memory budget before retrying",
    FallbackStrategy.HYBRID_COMPRESSION: "Inspect state construction for high-entropy input",
    FallbackStrategy.CLASSICAL_WITH_METADATA: "Quantum metadata preserved; retry when the pipeline recovers",
    FallbackStrategy.FAST_CLASSICAL: "Lossy output; recompress from source when time allows",
    FallbackStrategy.UNCOMPRESSED: "Store uncompressed and investigate the fallback failure",
}


@dataclass
class FallbackMetrics:
    error_count: int = 0
    recovered_bytes: int = 0
    integrity_score: float = 0.0


@dataclass
class FallbackStrategyResult:
    """Outcome of a graceful degradation attempt."""

    success: bool
    fallback_strategy: FallbackStrategy
    compressed_data: bytes
    compression_ratio: float
    processing_time_ms: float
    original_failure_reason: str
    fallback_metrics: FallbackMetrics = field(default_factory=FallbackMetrics)
    integrity_verified: bool = False
    recommended_action: str = ""

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "fallback_strategy": self.fallback_strategy.value,
            "compressed_size": len(self.compressed_data),
            "compression_ratio": round(self.compression_ratio, 4),
            "processing_time_ms": round(self.processing_time_ms, 2),
            "original_failure_reason": self.original_failure_reason,
            "fallback_metrics": {
                "error_count": self.fallback_metrics.error_count,
                "recovered_bytes": self.fallback_metrics.recovered_bytes,
                "integrity_score": round(self.fallback_metrics.integrity_score, 4),
            },
            "integrity_verified": self.integrity_verified,
            "recommended_action": self.recommended_action,
        }


# =============================================================================
# CODECS
# =============================================================================

def rle_encode(data: bytes) -> bytes:
    """Encode as (count, byte) pairs with count capped at 255."""
    out = bytearray()
    i = 0
    n = len(data)
    while i < n:
        value = data[i]
        run = 1
        while i + run < n and data[i + run] == value and run < 255:
            run += 1
        out.append(run)
        out.append(value)
        i += run
    return bytes(out)


def rle_decode(payload: bytes) -> bytes:
    if len(payload) % 2:
        raise ValueError("Run-length payload must contain (count, byte) pairs")
    out = bytearray()
    for i in range(0, len(payload), 2):
        out.extend(bytes([payload[i + 1]]) * payload[i])
    return bytes(out)


def phase_delta_encode(data: bytes) -> bytes:
    """Replace each byte with its phase step from the previous byte."""
    out = bytearray(len(data))
    previous = 0
    for i, value in enumerate(data):
        out[i] = (value - previous) % 256
        previous = value
    return bytes(out)


def phase_delta_decode(data: bytes) -> bytes:
    out = bytearray(len(data))
    previous = 0
    for i, step in enumerate(data):
        previous = (previous + step) % 256
        out[i] = previous
    return bytes(out)


def _length_prefixed(payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + payload


def _read_length_prefixed(buffer: bytes, offset: int) -> tuple[bytes, int]:
    if offset + 4 > len(buffer):
        raise ValueError("Truncated length prefix")
    (length,) = struct.unpack_from(">I", buffer, offset)
    start = offset + 4
    end = start + length
    if end > len(buffer):
        raise ValueError("Length prefix points past end of payload")
    return buffer[start:end], end


def classify_data_pattern(entropy: float) -> str:
    if entropy < 2:
        return "highly-structured"
    if entropy < 4:
        return "structured"
    if entropy < 6:
        return "mixed"
    if entropy < 7:
        return "random-like"
    return "highly-random"


# =============================================================================
# STRATEGIES
# =============================================================================

def _encode_simple(data: bytes) -> bytes:
    return rle_encode(data)


def _encode_chunked(data: bytes) -> bytes:
    out = bytearray()
    for start in range(0, len(data), CHUNK_SIZE):
        out.extend(_length_prefixed(rle_encode(data[start:start + CHUNK_SIZE])))
    return bytes(out)


def _encode_hybrid(data: bytes) -> bytes:
    head_size = min(QUANTUM_HEAD_LIMIT, int(len(data) * QUANTUM_HEAD_FRACTION))
    head = rle_encode(phase_delta_encode(data[:head_size]))
    return _length_prefixed(head) + rle_encode(data[head_size:])


def _encode_with_metadata(data: bytes) -> bytes:
    entropy = qmath.data_entropy(data)
    metadata = {
        "entropy": round(entropy, 6),
        "pattern": classify_data_pattern(entropy),
        "timestamp": time.time(),
    }
    header = json.dumps(metadata, sort_keys=True).encode("utf-8")
    return _length_prefixed(header) + rle_encode(data)


def _encode_fast(data: bytes) -> bytes:
    out = bytearray()
    for value in data:
        if not out or out[-1] != value:
            out.append(value)
    return bytes(out)


_ENCODERS = {
    FallbackStrategy.SIMPLE_CLASSICAL: _encode_simple,
    FallbackStrategy.CHUNKED_CLASSICAL: _encode_chunked,
    FallbackStrategy.HYBRID_COMPRESSION: _encode_hybrid,
    FallbackStrategy.CLASSICAL_WITH_METADATA: _encode_with_metadata,
    FallbackStrategy.FAST_CLASSICAL: _encode_fast,
    FallbackStrategy.UNCOMPRESSED: bytes,
}


def decode_fallback_payload(strategy: FallbackStrategy | str, payload: bytes) -> bytes:
    """Invert a fallback encoding.

    Raises:
        ValueError: for the lossy fast-classical strategy or a malformed payload
    """
    strategy = FallbackStrategy(strategy)

    if strategy == FallbackStrategy.UNCOMPRESSED:
        return bytes(payload)
    if strategy == FallbackStrategy.SIMPLE_CLASSICAL:
        return rle_decode(payload)
    if strategy == FallbackStrategy.CHUNKED_CLASSICAL:
        out = bytearray()
        offset = 0
        while offset < len(payload):
            chunk, offset = _read_length_prefixed(payload, offset)
            out.extend(rle_decode(chunk))
        return bytes(out)
    if strategy == FallbackStrategy.HYBRID_COMPRESSION:
        head, offset = _read_length_prefixed(payload, 0)
        return phase_delta_decode(rle_decode(head)) + rle_decode(payload[offset:])
    if strategy == FallbackStrategy.CLASSICAL_WITH_METADATA:
        _, offset = _read_length_prefixed(payload, 0)
        return rle_decode(payload[offset:])
    raise ValueError(f"Strategy '{strategy.value}' is lossy and cannot be decoded")


def read_fallback_metadata(payload: bytes) -> dict:
    """Metadata header of a classical-with-quantum-metadata payload."""
    header, _ = _read_length_prefixed(payload, 0)
    return json.loads(header.decode("utf-8"))


def select_strategy(
    data: bytes,
    failure_reason: str,
    options: GracefulDegradationOptions,
) -> FallbackStrategy:
    reason = failure_reason.lower()

    if options.preserve_metadata:
        return FallbackStrategy.CLASSICAL_WITH_METADATA
    if any(k in reason for k in _MEMORY_KEYWORDS):
        return FallbackStrategy.CHUNKED_CLASSICAL
    if any(k in reason for k in _TIMEOUT_KEYWORDS):
        if options.prioritize_speed:
            return FallbackStrategy.FAST_CLASSICAL
        return FallbackStrategy.SIMPLE_CLASSICAL
    if any(k in reason for k in _QUANTUM_KEYWORDS):
        if qmath.data_entropy(data) > 7:
            return FallbackStrategy.HYBRID_COMPRESSION
        return FallbackStrategy.SIMPLE_CLASSICAL

    if len(data) < SMALL_INPUT:
        return FallbackStrategy.SIMPLE_CLASSICAL
    if len(data) > LARGE_INPUT:
        return FallbackStrategy.CHUNKED_CLASSICAL
    if qmath.data_entropy(data) > 6:
        return FallbackStrategy.HYBRID_COMPRESSION
    return FallbackStrategy.CLASSICAL_WITH_METADATA


def attempt_graceful_degradation(
    data: bytes,
    failure_reason: str,
    options: GracefulDegradationOptions | None = None,
) -> FallbackStrategyResult:
    """Compress ``data`` classically after the quantum path failed.

    Never raises: if the chosen strategy itself fails, the original bytes are
    returned under the ``uncompressed`` strategy with ratio 1.0.

    Args:
        data: Original input
        failure_reason: Why the quantum path gave up (drives selection)
        options: Selection knobs

    Returns:
        FallbackStrategyResult
    """
    options = options or GracefulDegradationOptions()
    data = bytes(data)
    start = time.perf_counter()
    strategy = FallbackStrategy.UNCOMPRESSED

    try:
        strategy = select_strategy(data, failure_reason, options)
        payload = _ENCODERS[strategy](data)

        if strategy == FallbackStrategy.FAST_CLASSICAL:
            verified = False
            recovered = len(payload)
            integrity = len(payload) / len(data) if data else 1.0
        else:
            verified = decode_fallback_payload(strategy, payload) == data
            recovered = len(data) if verified else 0
            integrity = 1.0 if verified else 0.0

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            f"Graceful degradation via {strategy.value}: "
            f"{len(data)} -> {len(payload)} bytes ({failure_reason})"
        )
        return FallbackStrategyResult(
            success=True,
            fallback_strategy=strategy,
            compressed_data=payload,
            compression_ratio=len(data) / len(payload) if payload else 1.0,
            processing_time_ms=elapsed,
            original_failure_reason=failure_reason,
            fallback_metrics=FallbackMetrics(
                error_count=0 if verified or strategy == FallbackStrategy.FAST_CLASSICAL else 1,
                recovered_bytes=recovered,
                integrity_score=integrity,
            ),
            integrity_verified=verified,
            recommended_action=_RECOMMENDED_ACTIONS[strategy],
        )
    except Exception as e:
        logger.warning(f"Fallback strategy {strategy.value} failed ({e}); storing uncompressed")
        return FallbackStrategyResult(
            success=False,
            fallback_strategy=FallbackStrategy.UNCOMPRESSED,
            compressed_data=data,
            compression_ratio=1.0,
            processing_time_ms=(time.perf_counter() - start) * 1000,
            original_failure_reason=failure_reason,
            fallback_metrics=FallbackMetrics(error_count=1, recovered_bytes=len(data), integrity_score=1.0),
            integrity_verified=True,
            recommended_action=_RECOMMENDED_ACTIONS[FallbackStrategy.UNCOMPRESSED],
        )
