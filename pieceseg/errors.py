"""
Error types raised by the normalization and segmentation engine.

Only configuration problems are errors at this layer. Malformed input text
is never an error: invalid bytes are normalized to U+FFFD and processing
continues.
"""


class ConfigurationError(ValueError):
    """Raised when a vocabulary, rule blob or model configuration is invalid."""
    pass


class CharsMapFormatError(ConfigurationError):
    """Raised when a serialized normalization rule blob is structurally broken."""
    pass
