#!/usr/bin/env python3
"""
Subword Tokenizer for Encoding and Decoding

This module contains the Tokenizer class, which runs raw text through the
normalizer and the BPE segmenter to produce piece ids, and maps ids back to
text.

Usage:
    tokenizer = Tokenizer.from_files("sample_data/model.json")
    ids = tokenizer.encode("Hello world!")
    text = tokenizer.decode(ids)
"""

from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

from .bpe_model import BPEModel, EncodeResult
from .builder import populate_normalizer_spec
from .errors import ConfigurationError
from .model_config import ModelConfig
from .normalizer import Normalizer
from .utils import SPACE_SYMBOL, to_bytes


class EncodedPiece(NamedTuple):
    """A piece with the byte span of the original input it came from."""
    piece: str
    id: int
    surface: str
    begin: int
    end: int


class Tokenizer:
    """
    Tokenizer class for encoding and decoding text with a piece vocabulary.

    Encoding normalizes the input (rewrite rules, whitespace escaping, dummy
    prefix) and then segments it with greedy score-ordered merges. Decoding
    joins pieces and restores spaces.

    Usage:
        # Load from a JSON model configuration
        tokenizer = Tokenizer.from_files('model.json')

        # Load from an upstream SentencePiece model
        tokenizer = Tokenizer.from_sentencepiece('bpe.model')

        # Encode text to ids or pieces
        ids = tokenizer.encode("Hello world!")
        pieces = tokenizer.encode_as_pieces("Hello world!")

        # Decode ids back to text
        text = tokenizer.decode(ids)
    """

    def __init__(self, config: ModelConfig):
        """
        Initialize the tokenizer from a model configuration.

        Configuration errors do not raise here; they are stored in ``status``
        and raised by every later encode/decode call.

        Args:
            config: Pieces in id order plus normalization settings
        """
        self.config = config

        # Vocabulary and merge engine
        self.model = BPEModel(config)
        self.status: Optional[ConfigurationError] = self.model.status
        if self.status is None and config.model_type != "bpe":
            self.status = ConfigurationError(
                f"Unsupported model_type: {config.model_type} (only 'bpe' is implemented)"
            )

        # Resolve the rule blob (compiles a rule TSV when one is given)
        normalizer_spec = config.normalizer_spec
        try:
            normalizer_spec = populate_normalizer_spec(normalizer_spec)
        except ConfigurationError as e:
            if self.status is None:
                self.status = e

        self.normalizer = Normalizer(normalizer_spec, config.treat_whitespace_as_suffix)
        # User-defined pieces must survive normalization untouched
        self.normalizer.set_prefix_matcher(self.model.prefix_matcher)
        if self.status is None:
            self.status = self.normalizer.status

    @classmethod
    def from_files(cls, config_filepath: str):
        """
        Create a tokenizer from a JSON model configuration file.

        Args:
            config_filepath: Path written by ModelConfig.save_json / save_files

        Returns:
            Tokenizer instance
        """
        return cls(ModelConfig.load_json(config_filepath))

    @classmethod
    def from_sentencepiece(cls, model_filepath: str):
        """Create a tokenizer from an upstream SentencePiece ``.model`` file."""
        return cls(ModelConfig.from_sentencepiece(model_filepath))

    @classmethod
    def from_pickle(cls, config_pickle_path: str):
        """
        Create a tokenizer from a pickled ModelConfig.

        Args:
            config_pickle_path: Path written by save_pickle

        Returns:
            Tokenizer instance
        """
        import pickle

        with open(config_pickle_path, 'rb') as f:
            config = pickle.load(f)

        # Validate loaded data type
        if not isinstance(config, ModelConfig):
            raise ValueError(f"Expected ModelConfig, got {type(config)}")

        return cls(config)

    def save_files(self, config_filepath: str):
        """Save the model configuration as JSON."""
        self.config.save_json(config_filepath)
        print(f"Tokenizer saved: {config_filepath}")

    def save_pickle(self, config_pickle_path: str):
        """
        Save the model configuration to a pickle file.

        Args:
            config_pickle_path: Path to save the pickle file
        """
        import pickle

        with open(config_pickle_path, 'wb') as f:
            pickle.dump(self.config, f)

        print(f"Tokenizer saved: {config_pickle_path}")

    @property
    def ok(self) -> bool:
        return self.status is None

    def _check_status(self):
        if self.status is not None:
            raise self.status

    # Vocabulary accessors

    @property
    def vocab_size(self) -> int:
        return self.model.get_piece_size()

    def __len__(self) -> int:
        return self.vocab_size

    def piece_to_id(self, piece: str) -> int:
        return self.model.piece_to_id(piece)

    def id_to_piece(self, id: int) -> str:
        return self.model.id_to_piece(id)

    def _special_id(self, piece: str) -> int:
        # -1 when the configuration does not define the piece
        id = self.model.piece_to_id(piece)
        if id < 0 or self.model.id_to_piece(id) != piece:
            return -1
        return id

    @property
    def unk_id(self) -> int:
        return self.model.unk_id

    @property
    def bos_id(self) -> int:
        return self._special_id(self.model.bos_piece)

    @property
    def eos_id(self) -> int:
        return self._special_id(self.model.eos_piece)

    @property
    def pad_id(self) -> int:
        return self._special_id(self.model.pad_piece)

    # Encoding

    def normalize(self, text: Union[str, bytes]) -> Tuple[bytes, List[int]]:
        """Normalize text and return the normalized bytes with their alignment."""
        self._check_status()
        return self.normalizer.normalize(text)

    def _encode(self, text: Union[str, bytes]) -> Tuple[bytes, List[int], EncodeResult]:
        normalized, alignment = self.normalize(text)
        return normalized, alignment, self.model.encode(normalized)

    def encode(self, text: Union[str, bytes]) -> List[int]:
        """
        Encode text into a list of piece ids.

        Args:
            text: Input text to encode

        Returns:
            List of piece ids
        """
        if not text:
            return []
        _, _, result = self._encode(text)
        return [id for _, id in result]

    def encode_as_pieces(self, text: Union[str, bytes]) -> List[str]:
        """Encode text into a list of piece strings."""
        if not text:
            return []
        _, _, result = self._encode(text)
        return [piece.decode('utf-8', errors='replace') for piece, _ in result]

    def encode_with_offsets(self, text: Union[str, bytes]) -> List[EncodedPiece]:
        """
        Encode text and report where each piece came from.

        ``begin``/``end`` are byte offsets into the UTF-8 input and
        ``surface`` is the original text they cover.
        """
        data = to_bytes(text)
        if not data:
            return []
        normalized, alignment, result = self._encode(data)

        encoded = []
        consumed = 0
        for piece, id in result:
            begin = alignment[consumed]
            end = alignment[consumed + len(piece)]
            consumed += len(piece)
            encoded.append(EncodedPiece(
                piece=piece.decode('utf-8', errors='replace'),
                id=id,
                surface=data[begin:end].decode('utf-8', errors='replace'),
                begin=begin,
                end=end,
            ))
        assert consumed == len(normalized)
        return encoded

    def encode_iterable(self, iterable: Iterable[str]) -> Iterator[int]:
        """
        Encode an iterable of strings (e.g., file lines) into ids lazily.

        Args:
            iterable: An iterable of strings (e.g., file handle, list of strings)

        Yields:
            Piece ids one by one
        """
        for text_chunk in iterable:
            yield from self.encode(text_chunk)

    # Decoding

    def decode(self, ids: Sequence[int]) -> str:
        """
        Decode a sequence of piece ids back into text.

        Args:
            ids: Piece ids to decode

        Returns:
            Decoded text
        """
        self._check_status()
        size = self.vocab_size
        for id in ids:
            if not 0 <= id < size:
                raise ValueError(f"Unknown piece id: {id}")
        return self._decode([(self.model.id_to_piece(id), id) for id in ids])

    def decode_pieces(self, pieces: Sequence[str]) -> str:
        """Decode a sequence of piece strings back into text."""
        self._check_status()
        return self._decode([(piece, self.model.piece_to_id(piece)) for piece in pieces])

    def _decode(self, pieces: List[Tuple[str, int]]) -> str:
        spec = self.normalizer.spec
        surfaces = []
        for piece, id in pieces:
            if self.model.is_control(id):
                continue
            if self.model.is_unknown(id) and piece == self.model.id_to_piece(id):
                surfaces.append(self.config.unk_surface)
                continue
            if spec.escape_whitespaces:
                piece = piece.replace(SPACE_SYMBOL, ' ')
            surfaces.append(piece)

        # Drop the space introduced by the dummy boundary marker
        if surfaces and spec.add_dummy_prefix:
            if self.config.treat_whitespace_as_suffix:
                if surfaces[-1].endswith(' '):
                    surfaces[-1] = surfaces[-1][:-1]
            elif surfaces[0].startswith(' '):
                surfaces[0] = surfaces[0][1:]

        return ''.join(surfaces)
