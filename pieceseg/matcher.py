"""
Exact-match boundary matcher for protected literal tokens.

User-defined pieces such as ``<sep>`` must reach the segmenter intact: neither
normalization rules nor merges may split them. The matcher answers, for one
input position, whether a dictionary entry starts there and how long the
longest such entry is.
"""

from typing import Iterable, Tuple, Union

from .prefix_index import PrefixIndex
from .utils import one_char_len, to_bytes

# Protected tokens sharing one start position are few; cap the search anyway
MATCHER_MAX_RESULTS = 64


class PrefixMatcher:
    """
    Longest-match lookup over a set of literal strings.

    Usage:
        matcher = PrefixMatcher(["<unk>", "<sep>"])
        matcher.prefix_match(b"<sep>abc")   # (5, True)
        matcher.prefix_match(b"abc")        # (1, False)
    """

    def __init__(self, dic: Iterable[Union[str, bytes]] = ()):
        # Sorted so that the index contents do not depend on set iteration order
        keys = sorted({to_bytes(w) for w in dic if w})
        self._index = PrefixIndex(keys) if keys else None

    def __bool__(self) -> bool:
        return self._index is not None

    def __contains__(self, key: Union[str, bytes]) -> bool:
        return self._index is not None and to_bytes(key) in self._index

    def prefix_match(self, data: bytes, pos: int = 0) -> Tuple[int, bool]:
        """
        Match the dictionary at ``data[pos]``.

        Returns:
            (length, found). When nothing matches, length is the byte length
            of the code point at ``pos`` and found is False.
        """
        if self._index is not None:
            results = self._index.common_prefix_search(data, pos, MATCHER_MAX_RESULTS)
            if results:
                return max(length for length, _ in results), True
        return min(len(data) - pos, one_char_len(data, pos)), False

    def global_replace(self, data: Union[str, bytes], out: Union[str, bytes]) -> bytes:
        """Replace every dictionary occurrence in ``data`` with ``out``."""
        data = to_bytes(data)
        out = to_bytes(out)
        result = bytearray()
        pos = 0
        while pos < len(data):
            length, found = self.prefix_match(data, pos)
            if found:
                result.extend(out)
            else:
                result.extend(data[pos:pos + length])
            pos += length
        return bytes(result)
