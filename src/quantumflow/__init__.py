"""
quantumflow - Quantum-inspired compression core

Byte buffers are mapped onto complex amplitude vectors, combined into
superpositions, mined for cross-buffer correlation (entanglement), reshaped by
threshold-gated interference and protected by redundancy encoding, checksums
and classical fallbacks.

Quick Start:
    from quantumflow import QuantumStateVector, EntanglementPair, compress, decompress

    # Bytes -> amplitudes
    state = QuantumStateVector.from_bytes(b"\\x0a\\x14\\x1e\\x28")
    print(state.probability_distribution())

    # Correlated buffers
    pair = EntanglementPair.create_if_correlated(state, state.apply_phase_shift(0.3))

    # Byte-level facade
    blob = compress(b"aaaaabbbbbcccccc")
    assert decompress(blob) == b"aaaaabbbbbcccccc"

Modules:
    quantumflow.complex_number   - Immutable complex value type
    quantumflow.qmath            - Probability, entropy and correlation helpers
    quantumflow.state            - QuantumStateVector
    quantumflow.superposition    - Superposition state and processor
    quantumflow.entanglement     - Entanglement pairs and analyzer
    quantumflow.interference     - Threshold-gated interference optimizer
    quantumflow.decoherence      - Error detector contract
    quantumflow.error_correction - Redundancy encoding and correction sessions
    quantumflow.checksum         - Amplitude-derived checksums
    quantumflow.degradation      - Classical fallback strategies
    quantumflow.engine           - Compression facade and container format
    quantumflow.loader           - YAML threshold profile loading
    quantumflow.types            - Pydantic configuration models
"""

__version__ = "0.3.0"

# Values & vectors
from .complex_number import Complex
from .state import QuantumStateVector, chunk_bytes

# Superposition
from .superposition import (
    Measurement,
    PatternProbability,
    SuperpositionProcessor,
    SuperpositionState,
)

# Entanglement
from .entanglement import (
    EntanglementAnalyzer,
    EntanglementIndex,
    EntanglementPair,
)

# Interference
from .interference import (
    InterferenceOptimizer,
    aggressive_profile,
    conservative_profile,
    data_type_profile,
    default_profile,
    high_quality_profile,
    preset_profiles,
)

# Error handling & integrity
from .decoherence import (
    DecoherenceDetector,
    ErrorType,
    ThresholdDecoherenceDetector,
)
from .error_correction import (
    ErrorCorrectionResult,
    QuantumErrorCorrection,
    SessionState,
    majority_vote,
)
from .checksum import generate_quantum_checksum, verify_quantum_checksum
from .degradation import FallbackStrategy, attempt_graceful_degradation

# Facade
from .batch import Deadline
from .engine import (
    DecompressionResult,
    QuantumCompressionEngine,
    compress,
    decompress,
)
from .loader import ProfileLoader

# Types & errors
from .types import (
    EntanglementConfig,
    ErrorCorrectionConfig,
    GracefulDegradationOptions,
    InterferenceConfig,
    QuantumChecksumOptions,
    QuantumConfig,
    SuperpositionConfig,
    ThresholdConfiguration,
    ThresholdProfile,
)
from .exceptions import (
    ChecksumError,
    CoherenceError,
    ContainerFormatError,
    DeadlineExceeded,
    EntanglementError,
    QuantumFlowError,
    QuantumStateError,
)

__all__ = [
    # Version
    "__version__",
    # Values & vectors
    "Complex",
    "QuantumStateVector",
    "chunk_bytes",
    # Superposition
    "Measurement",
    "PatternProbability",
    "SuperpositionProcessor",
    "SuperpositionState",
    # Entanglement
    "EntanglementAnalyzer",
    "EntanglementIndex",
    "EntanglementPair",
    # Interference
    "InterferenceOptimizer",
    "aggressive_profile",
    "conservative_profile",
    "data_type_profile",
    "default_profile",
    "high_quality_profile",
    "preset_profiles",
    # Error handling & integrity
    "DecoherenceDetector",
    "ErrorType",
    "ThresholdDecoherenceDetector",
    "ErrorCorrectionResult",
    "QuantumErrorCorrection",
    "SessionState",
    "majority_vote",
    "generate_quantum_checksum",
    "verify_quantum_checksum",
    "FallbackStrategy",
    "attempt_graceful_degradation",
    # Facade
    "Deadline",
    "DecompressionResult",
    "QuantumCompressionEngine",
    "compress",
    "decompress",
    "ProfileLoader",
    # Types
    "EntanglementConfig",
    "ErrorCorrectionConfig",
    "GracefulDegradationOptions",
    "InterferenceConfig",
    "QuantumChecksumOptions",
    "QuantumConfig",
    "SuperpositionConfig",
    "ThresholdConfiguration",
    "ThresholdProfile",
    # Errors
    "ChecksumError",
    "CoherenceError",
    "ContainerFormatError",
    "DeadlineExceeded",
    "EntanglementError",
    "QuantumFlowError",
    "QuantumStateError",
]
