"""
quantumflow/checksum.py - Amplitude-derived integrity checksums

Bytes are read pairwise as amplitude-like values
    (b1, b2) -> ((b1 - 128) / 128, (b2 - 128) / 128)
and three digests are derived from them:

    base         per-amplitude magnitude/phase contributions, hex encoded
    phase        sum of amplitude phases, wrapped to [0, 2*pi)
    probability  sum of |a|^2

The combined checksum folds all three through a 32-bit string hash, one
8-hex-digit segment per round, until the requested length is reached.

This is an integrity fingerprint, not a cryptographic hash.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Literal

from .exceptions import ChecksumError
from .types import QuantumChecksumOptions

logger = logging.getLogger(__name__)

BASE_DIGEST_LENGTH = 32
STALE_AFTER_S = 24 * 60 * 60
VALID_SCORE = 0.95
CORRUPTION_SCORE = 0.9

CorruptionType = Literal["none", "content-corruption", "size-mismatch", "temporal-inconsistency"]


@dataclass(frozen=True)
class QuantumChecksum:
    checksum: str
    base_checksum: str
    phase_checksum: str | None
    probability_checksum: str | None
    data_length: int
    timestamp: float
    options: QuantumChecksumOptions

    def to_dict(self) -> dict:
        return {
            "checksum": self.checksum,
            "base_checksum": self.base_checksum,
            "phase_checksum": self.phase_checksum,
            "probability_checksum": self.probability_checksum,
            "data_length": self.data_length,
            "timestamp": self.timestamp,
            "options": self.options.model_dump(),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> QuantumChecksum:
        return cls(
            checksum=raw["checksum"],
            base_checksum=raw["base_checksum"],
            phase_checksum=raw.get("phase_checksum"),
            probability_checksum=raw.get("probability_checksum"),
            data_length=int(raw["data_length"]),
            timestamp=float(raw["timestamp"]),
            options=QuantumChecksumOptions(**raw.get("options", {})),
        )


@dataclass
class ChecksumVerification:
    is_valid: bool
    integrity_score: float
    main_match: bool
    phase_match: bool | None
    probability_match: bool | None
    corruption_detected: bool
    corruption_type: CorruptionType
    corruption_severity: float
    computed: QuantumChecksum


# =============================================================================
# DIGESTS
# =============================================================================

def _amplitude_pairs(data: bytes) -> list[complex]:
    pairs = []
    for i in range(0, len(data), 2):
        re = (data[i] - 128) / 128.0
        im = (data[i + 1] - 128) / 128.0 if i + 1 < len(data) else 0.0
        pairs.append(complex(re, im))
    return pairs


def _base_digest(amplitudes: list[complex]) -> str:
    parts = []
    for amp in amplitudes:
        mag = abs(amp)
        phase = math.atan2(amp.imag, amp.real)
        contribution = abs(math.floor((mag * math.cos(phase) + phase * math.sin(phase)) * 1000))
        parts.append(format(contribution, "02x"))
    return "".join(parts)[:BASE_DIGEST_LENGTH]


def _phase_digest(amplitudes: list[complex]) -> str:
    total = sum(math.atan2(a.imag, a.real) for a in amplitudes)
    wrapped = ((total % (2 * math.pi)) + 2 * math.pi) % (2 * math.pi)
    return format(math.floor(wrapped * 1000), "x")


def _probability_digest(amplitudes: list[complex]) -> str:
    total = sum(abs(a) ** 2 for a in amplitudes)
    return format(math.floor(total * 1000), "x")


def string_hash(text: str) -> int:
    """32-bit signed rolling hash: h = h * 31 + ord(c)."""
    h = 0
    for ch in text:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def _fold(text: str, length: int) -> str:
    segments = []
    rounds = math.ceil(length / 8)
    for i in range(rounds):
        segments.append(format(abs(string_hash(f"{text}|{i}")), "08x")[:8])
    return "".join(segments)[:length]


# =============================================================================
# PUBLIC API
# =============================================================================

def generate_quantum_checksum(
    data: bytes,
    options: QuantumChecksumOptions | None = None,
) -> QuantumChecksum:
    """Fingerprint ``data``.

    Raises:
        ChecksumError: if digest computation fails unexpectedly
    """
    options = options or QuantumChecksumOptions()
    try:
        amplitudes = _amplitude_pairs(bytes(data))
        base = _base_digest(amplitudes)
        phase = _phase_digest(amplitudes) if options.include_phase else None
        probability = _probability_digest(amplitudes) if options.include_probability else None
        combined = _fold(f"{base}:{phase or ''}:{probability or ''}", options.checksum_length)
    except Exception as e:
        raise ChecksumError(f"Failed to generate quantum checksum: {e}") from e

    return QuantumChecksum(
        checksum=combined,
        base_checksum=base,
        phase_checksum=phase,
        probability_checksum=probability,
        data_length=len(data),
        timestamp=time.time(),
        options=options,
    )


def verify_quantum_checksum(
    data: bytes,
    expected: QuantumChecksum,
    now: float | None = None,
) -> ChecksumVerification:
    """Recompute with the same options and compare. Never raises on mismatch."""
    computed = generate_quantum_checksum(data, expected.options)
    now = time.time() if now is None else now

    main_match = computed.checksum == expected.checksum
    weights = {"main": 0.6}
    scores = {"main": 1.0 if main_match else 0.0}

    phase_match = None
    if expected.phase_checksum is not None:
        phase_match = computed.phase_checksum == expected.phase_checksum
        weights["phase"] = 0.2
        scores["phase"] = 1.0 if phase_match else 0.0

    probability_match = None
    if expected.probability_checksum is not None:
        probability_match = computed.probability_checksum == expected.probability_checksum
        weights["probability"] = 0.2
        scores["probability"] = 1.0 if probability_match else 0.0

    total_weight = sum(weights.values())
    score = sum(scores[k] * w for k, w in weights.items()) / total_weight

    corruption_type: CorruptionType = "none"
    severity = 0.0
    if not main_match:
        corruption_type = "content-corruption"
        severity = _char_difference_ratio(computed.checksum, expected.checksum)
    elif len(data) != expected.data_length:
        corruption_type = "size-mismatch"
        severity = min(1.0, abs(len(data) - expected.data_length) / max(expected.data_length, 1))
    elif now - expected.timestamp > STALE_AFTER_S:
        corruption_type = "temporal-inconsistency"
        severity = 0.1

    verification = ChecksumVerification(
        is_valid=main_match and score > VALID_SCORE,
        integrity_score=score,
        main_match=main_match,
        phase_match=phase_match,
        probability_match=probability_match,
        corruption_detected=score < CORRUPTION_SCORE,
        corruption_type=corruption_type,
        corruption_severity=severity,
        computed=computed,
    )
    if verification.corruption_detected:
        logger.warning(
            f"Checksum mismatch: {corruption_type} (score={score:.2f}, severity={severity:.2f})"
        )
    return verification


def _char_difference_ratio(a: str, b: str) -> float:
    length = max(len(a), len(b))
    if length == 0:
        return 0.0
    diffs = sum(1 for i in range(length) if i >= len(a) or i >= len(b) or a[i] != b[i])
    return diffs / length
