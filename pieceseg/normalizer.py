"""
Trie-backed text normalizer with byte-level alignment.

The normalizer rewrites raw text into the canonical form the segmenter
consumes and records, for every output byte, the input byte offset that
produced it. Rewrite rules come from a precompiled rule blob:

    <uint32 LE trie size N><N bytes: serialized prefix index><replacement pool>

where each trie value is an offset into the pool of NUL-terminated
replacement strings. An empty blob means identity normalization.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .errors import CharsMapFormatError, ConfigurationError
from .matcher import PrefixMatcher
from .prefix_index import MAX_TRIE_RESULTS, PrefixIndex, load_prefix_index
from .utils import (
    REPLACEMENT_CHAR,
    SPACE_SYMBOL_BYTES,
    decode_pod,
    decode_utf8_prefix,
    encode_pod,
    to_bytes,
)


@dataclass
class NormalizerSpec:
    """Normalization settings carried by a model configuration."""
    name: str = "identity"
    precompiled_charsmap: bytes = b""
    add_dummy_prefix: bool = True
    remove_extra_whitespaces: bool = True
    escape_whitespaces: bool = True
    normalization_rule_tsv: str = ""


def encode_precompiled_charsmap(trie_blob: bytes, normalized: bytes) -> bytes:
    """Pack a serialized trie and its replacement pool into one rule blob."""
    return encode_pod(len(trie_blob)) + bytes(trie_blob) + bytes(normalized)


def decode_precompiled_charsmap(blob: bytes) -> Tuple[bytes, bytes]:
    """
    Split a rule blob into its serialized trie and replacement pool.

    Raises:
        CharsMapFormatError: If the length prefix is missing or points past
            the end of the blob
    """
    if len(blob) < 4:
        raise CharsMapFormatError("Blob for normalization rule is broken: missing length prefix")
    trie_size = decode_pod(blob)
    if 4 + trie_size > len(blob):
        raise CharsMapFormatError(
            f"Blob for normalization rule is broken: trie size {trie_size} exceeds blob size {len(blob)}"
        )
    return blob[4:4 + trie_size], blob[4 + trie_size:]


def _check_pool_offset(normalized: bytes, offset: int, key: bytes = b"") -> int:
    """Return the end of the NUL-terminated replacement starting at ``offset``."""
    end = normalized.find(b"\0", offset) if 0 <= offset < len(normalized) else -1
    if end < 0:
        raise CharsMapFormatError(
            f"Blob for normalization rule is broken: replacement offset {offset} for {key!r} "
            f"does not start a NUL-terminated string in a pool of {len(normalized)} bytes"
        )
    return end


class Normalizer:
    """
    Normalizes raw text and tracks byte provenance.

    The instance is immutable after construction (apart from the one-time
    :meth:`set_prefix_matcher` wiring) and can be shared across threads.

    Usage:
        normalizer = Normalizer(NormalizerSpec())
        text, alignment = normalizer.normalize("I have a pen")
        # text == "▁I▁have▁a▁pen".encode(), len(alignment) == len(text) + 1
    """

    def __init__(self, spec: NormalizerSpec, treat_whitespace_as_suffix: bool = False):
        """
        Args:
            spec: Normalization settings and rule blob
            treat_whitespace_as_suffix: Put the dummy boundary marker after the
                text instead of before it
        """
        self.spec = spec
        self.treat_whitespace_as_suffix = treat_whitespace_as_suffix
        self.status: Optional[ConfigurationError] = None
        self._trie = None
        self._normalized = b""
        self._matcher: Optional[PrefixMatcher] = None

        blob = spec.precompiled_charsmap
        if not blob:
            return
        try:
            trie_blob, normalized = decode_precompiled_charsmap(blob)
            trie = load_prefix_index(trie_blob)
            if isinstance(trie, PrefixIndex):
                for key, offset in trie.items():
                    _check_pool_offset(normalized, offset, key)
        except ConfigurationError as e:
            self.status = e
            return
        self._trie = trie
        self._normalized = normalized

    @property
    def ok(self) -> bool:
        return self.status is None

    def set_prefix_matcher(self, matcher: Optional[PrefixMatcher]) -> None:
        """Protect the matcher's literal tokens from rewriting."""
        self._matcher = matcher

    def _replacement(self, offset: int) -> bytes:
        # Double-array values cannot be enumerated up front
        end = _check_pool_offset(self._normalized, offset)
        return self._normalized[offset:end]

    def normalize_prefix(self, data: bytes, pos: int = 0) -> Tuple[bytes, int]:
        """
        Normalize the longest rewritable prefix of ``data[pos:]``.

        Args:
            data: Raw input bytes
            pos: Offset of the remaining input

        Returns:
            (replacement, consumed). ``consumed`` input bytes produce
            ``replacement``; the two lengths may differ.
        """
        if pos >= len(data):
            return b"", 0

        # Protected tokens pass through untouched
        if self._matcher is not None:
            length, found = self._matcher.prefix_match(data, pos)
            if found:
                return data[pos:pos + length], length

        longest_length = 0
        longest_value = 0
        if self._trie is not None:
            for length, value in self._trie.common_prefix_search(data, pos, MAX_TRIE_RESULTS):
                # Strictly longer only: the first match of a given length wins
                if longest_length == 0 or length > longest_length:
                    longest_length = length
                    longest_value = value

        if longest_length == 0:
            length, valid = decode_utf8_prefix(data, pos)
            if not valid:
                # Malformed byte: emit U+FFFD, consume exactly one byte
                return REPLACEMENT_CHAR, 1
            return data[pos:pos + length], length

        return self._replacement(longest_value), longest_length

    def normalize(self, text: Union[str, bytes]) -> Tuple[bytes, List[int]]:
        """
        Normalize ``text``.

        Args:
            text: Raw input; str is UTF-8 encoded first

        Returns:
            (normalized, alignment) where ``alignment[i]`` is the input byte
            offset that produced ``normalized[i]`` and the final entry is the
            number of input bytes consumed.

        Raises:
            ConfigurationError: If the rule blob could not be loaded
        """
        data = to_bytes(text)
        if not data:
            return b"", [0]

        if self.status is not None:
            raise self.status

        spec = self.spec
        n = len(data)
        pos = 0

        # Ignore leading whitespace
        if spec.remove_extra_whitespaces:
            while pos < n:
                piece, length = self.normalize_prefix(data, pos)
                if piece != b" ":
                    break
                pos += length

        consumed = pos
        if pos >= n:
            return b"", [consumed]

        normalized = bytearray()
        norm_to_orig: List[int] = []
        space = SPACE_SYMBOL_BYTES if spec.escape_whitespaces else b" "

        def add_ws():
            normalized.extend(space)
            norm_to_orig.extend([consumed] * len(space))

        if not self.treat_whitespace_as_suffix and spec.add_dummy_prefix:
            add_ws()

        is_prev_space = spec.remove_extra_whitespaces
        while pos < n:
            piece, length = self.normalize_prefix(data, pos)

            # Collapse runs of whitespace across prefixes
            if is_prev_space:
                piece = piece.lstrip(b" ")

            if piece:
                if spec.escape_whitespaces and b" " in piece:
                    for byte in piece:
                        if byte == 0x20:
                            normalized.extend(SPACE_SYMBOL_BYTES)
                            norm_to_orig.extend([consumed] * len(SPACE_SYMBOL_BYTES))
                        else:
                            normalized.append(byte)
                            norm_to_orig.append(consumed)
                else:
                    normalized.extend(piece)
                    norm_to_orig.extend([consumed] * len(piece))
                is_prev_space = piece.endswith(b" ")

            consumed += length
            pos += length
            if not spec.remove_extra_whitespaces:
                is_prev_space = False

        # Ignore trailing whitespace
        if spec.remove_extra_whitespaces:
            while normalized.endswith(space):
                length = len(normalized) - len(space)
                assert length >= 0
                consumed = norm_to_orig[length]
                del normalized[length:]
                del norm_to_orig[length:]

        if self.treat_whitespace_as_suffix and spec.add_dummy_prefix:
            add_ws()

        norm_to_orig.append(consumed)
        assert len(norm_to_orig) == len(normalized) + 1, "alignment length mismatch"
        return bytes(normalized), norm_to_orig

    def normalize_text(self, text: Union[str, bytes]) -> str:
        """Normalize ``text`` and return only the normalized string."""
        normalized, _ = self.normalize(text)
        return normalized.decode("utf-8", errors="replace")
