"""
Byte-level text helpers shared by the normalizer and the merge engine.

All engine code works on UTF-8 ``bytes``: offsets reported in alignment maps
are byte offsets, and pieces are slices of one contiguous buffer.
"""

import struct
from typing import List, Tuple, Union

import regex as re

# U+2581 (LOWER ONE EIGHTH BLOCK), substituted for spaces and word boundaries
SPACE_SYMBOL = "▁"
SPACE_SYMBOL_BYTES = SPACE_SYMBOL.encode("utf-8")

# U+FFFD, emitted for every malformed byte
REPLACEMENT_CHAR = b"\xef\xbf\xbd"

# One well-formed UTF-8 code point. Overlong forms, surrogates and values
# above U+10FFFF do not match.
UTF8_CHAR = re.compile(
    rb"[\x00-\x7f]"
    rb"|[\xc2-\xdf][\x80-\xbf]"
    rb"|\xe0[\xa0-\xbf][\x80-\xbf]"
    rb"|[\xe1-\xec\xee\xef][\x80-\xbf]{2}"
    rb"|\xed[\x80-\x9f][\x80-\xbf]"
    rb"|\xf0[\x90-\xbf][\x80-\xbf]{2}"
    rb"|[\xf1-\xf3][\x80-\xbf]{3}"
    rb"|\xf4[\x80-\x8f][\x80-\xbf]{2}"
)


def to_bytes(text: Union[str, bytes]) -> bytes:
    """Return ``text`` as UTF-8 bytes, leaving bytes input untouched."""
    if isinstance(text, str):
        return text.encode("utf-8")
    return bytes(text)


def decode_utf8_prefix(data: bytes, pos: int = 0) -> Tuple[int, bool]:
    """
    Decode one code point starting at ``data[pos]``.

    Args:
        data: UTF-8 byte buffer
        pos: Offset of the first byte to decode

    Returns:
        (length, valid). A malformed sequence reports length 1 so the caller
        resynchronizes one raw byte at a time.
    """
    match = UTF8_CHAR.match(data, pos)
    if match is None:
        return 1, False
    return match.end() - pos, True


def one_char_len(data: bytes, pos: int = 0) -> int:
    """Byte length of the code point at ``data[pos]`` (1 for malformed bytes)."""
    return decode_utf8_prefix(data, pos)[0]


def encode_pod(value: int) -> bytes:
    """Encode an unsigned 32-bit integer as 4 little-endian bytes."""
    return struct.pack("<I", value)


def decode_pod(data: bytes, pos: int = 0) -> int:
    """Decode an unsigned 32-bit little-endian integer at ``data[pos]``."""
    return struct.unpack_from("<I", data, pos)[0]


def split_into_words(text: Union[str, bytes], treat_ws_as_suffix: bool = False) -> List[bytes]:
    """
    Split normalized text into words on the meta-boundary marker.

    With the marker as a prefix, "▁this▁is" becomes ["▁this", "▁is"]; with the
    marker as a suffix, "this▁is▁" becomes ["this▁", "is▁"].

    Args:
        text: Normalized text
        treat_ws_as_suffix: Attach markers to the end of words instead of the start

    Returns:
        List of words as byte slices of ``text``
    """
    data = to_bytes(text)
    marker = SPACE_SYMBOL_BYTES
    words: List[bytes] = []
    start = 0
    pos = 0
    n = len(data)

    if treat_ws_as_suffix:
        while pos < n:
            if data.startswith(marker, pos):
                pos += len(marker)
                words.append(data[start:pos])
                start = pos
            else:
                pos += one_char_len(data, pos)
        if start < n:
            words.append(data[start:])
        return words

    while pos < n:
        if data.startswith(marker, pos):
            # A marker opens a new word
            if pos > start:
                words.append(data[start:pos])
            start = pos
            pos += len(marker)
        else:
            pos += one_char_len(data, pos)
    if start < n:
        words.append(data[start:])
    return words
