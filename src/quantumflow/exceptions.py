"""
quantumflow/exceptions.py - Exception hierarchy

Construction-time violations fail fast with one of these. Correction and
verification failures are reported through result objects instead.
"""
from __future__ import annotations


class QuantumFlowError(Exception):
    """Base class for quantumflow errors."""


class QuantumStateError(QuantumFlowError, ValueError):
    """Raised for empty, all-zero or otherwise unusable amplitude sets."""


class EntanglementError(QuantumFlowError, ValueError):
    """Raised when an entanglement pair cannot be constructed."""


class CoherenceError(QuantumFlowError, RuntimeError):
    """Raised when an operation needs a coherent superposition."""


class ChecksumError(QuantumFlowError, RuntimeError):
    """Raised when checksum generation fails unexpectedly."""


class ContainerFormatError(QuantumFlowError, ValueError):
    """Raised when a compressed container cannot be parsed."""


class DeadlineExceeded(QuantumFlowError, TimeoutError):
    """Raised when a deadline token expires mid-computation."""

    def __init__(self, stage: str, budget_s: float):
        self.stage = stage
        self.budget_s = budget_s
        super().__init__(f"Deadline of {budget_s:.3f}s exceeded during {stage}")
