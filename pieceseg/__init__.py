"""
Subword Normalization and Segmentation Package

This package turns raw text into a deterministic sequence of vocabulary
pieces: a trie-backed normalizer rewrites the input while tracking byte
provenance, and a greedy merge engine segments the normalized text.

Main Components:
- Tokenizer: End-to-end encode/decode over a model configuration
- Normalizer: Rule-based text normalization with byte alignment
- BPEModel: Score-driven merge segmenter
- Vocabulary: Piece table with id/text lookup
- PrefixIndex / PrefixMatcher: Common-prefix search structures
- builder: Compiles normalization rule TSV files into rule blobs

Usage:
    from pieceseg import Tokenizer

    # Load a model configuration
    tokenizer = Tokenizer.from_files("sample_data/model.json")

    # Use the tokenizer
    ids = tokenizer.encode("Hello world!")
    text = tokenizer.decode(ids)
"""

# Import main classes and functions for easy access
from .tokenizer import (
    Tokenizer,
    EncodedPiece
)

from .bpe_model import BPEModel
from .vocab import Vocabulary
from .model_config import ModelConfig, Piece, PieceType
from .normalizer import (
    Normalizer,
    NormalizerSpec,
    encode_precompiled_charsmap,
    decode_precompiled_charsmap
)
from .prefix_index import (
    PrefixIndex,
    DoubleArray,
    load_prefix_index,
    MAX_TRIE_RESULTS
)
from .matcher import PrefixMatcher
from .builder import (
    load_chars_map,
    save_chars_map,
    compile_chars_map,
    decompile_chars_map,
    populate_normalizer_spec
)
from .errors import ConfigurationError, CharsMapFormatError
from .utils import SPACE_SYMBOL, split_into_words

__version__ = "1.0.0"
__all__ = [
    # Main tokenizer class
    "Tokenizer",
    "EncodedPiece",

    # Engine components
    "BPEModel",
    "Vocabulary",
    "Normalizer",
    "NormalizerSpec",
    "PrefixIndex",
    "DoubleArray",
    "PrefixMatcher",

    # Configuration
    "ModelConfig",
    "Piece",
    "PieceType",

    # Rule blobs
    "load_chars_map",
    "save_chars_map",
    "compile_chars_map",
    "decompile_chars_map",
    "populate_normalizer_spec",
    "encode_precompiled_charsmap",
    "decode_precompiled_charsmap",
    "load_prefix_index",

    # Errors
    "ConfigurationError",
    "CharsMapFormatError",

    # Constants and helpers
    "MAX_TRIE_RESULTS",
    "SPACE_SYMBOL",
    "split_into_words"
]
