"""
Common-prefix-search structures.

Two interchangeable implementations answer "which stored keys are a prefix
of this input, and what value is attached to each":

- PrefixIndex: a nested-dict trie built in memory from a key set. This is the
  structure the rule builder compiles and the boundary matcher uses.
- DoubleArray: a read-only view over darts-clone double-array units, the trie
  encoding found inside rule blobs shipped with upstream model files.

Both are built once and never mutated, so one instance can be shared by any
number of concurrent readers.
"""

import struct
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import CharsMapFormatError

# Upper bound on matches a normalization rule query may return
MAX_TRIE_RESULTS = 32

PREFIX_INDEX_MAGIC = b"PIDX"

# Trie node slot holding the value of a key that ends at this node
_LEAF = -1


class PrefixIndex:
    """
    Trie over byte-string keys with an integer value per key.

    Keys are inserted in the given order. When the same key appears twice the
    value inserted first is kept, which makes match selection independent of
    traversal order.

    Usage:
        index = PrefixIndex([b"a", b"ab", b"abc"], [10, 20, 30])
        index.common_prefix_search(b"abd")   # [(1, 10), (2, 20)]
    """

    def __init__(self, keys: Iterable[Union[str, bytes]] = (), values: Optional[Sequence[int]] = None):
        """
        Build the index.

        Args:
            keys: Keys to store; str keys are UTF-8 encoded
            values: Value for each key; defaults to the key's insertion position
        """
        self._root: dict = {}
        self._keys: List[bytes] = []
        self._values: List[int] = []

        key_list = [k.encode("utf-8") if isinstance(k, str) else bytes(k) for k in keys]
        if values is None:
            values = range(len(key_list))
        if len(values) != len(key_list):
            raise ValueError(f"Expected {len(key_list)} values, got {len(values)}")

        for key, value in zip(key_list, values):
            self._insert(key, int(value))

    def _insert(self, key: bytes, value: int) -> None:
        if not key:
            raise ValueError("Prefix index keys must not be empty")
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"Prefix index values must not be negative or exceed uint32, got {value} for {key!r}")
        node = self._root
        for byte in key:
            child = node.get(byte)
            if child is None:
                child = {}
                node[byte] = child
            node = child
        if _LEAF in node:
            return
        node[_LEAF] = value
        self._keys.append(key)
        self._values.append(value)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: Union[str, bytes]) -> bool:
        if isinstance(key, str):
            key = key.encode("utf-8")
        node = self._root
        for byte in key:
            node = node.get(byte)
            if node is None:
                return False
        return _LEAF in node

    def items(self) -> List[Tuple[bytes, int]]:
        """Stored (key, value) pairs in insertion order."""
        return list(zip(self._keys, self._values))

    def common_prefix_search(self, data: bytes, pos: int = 0, max_results: Optional[int] = None) -> List[Tuple[int, int]]:
        """
        Find every stored key that is a prefix of ``data[pos:]``.

        Args:
            data: Query buffer
            pos: Offset in ``data`` where the query starts
            max_results: Stop after this many matches

        Returns:
            (length, value) pairs, shortest match first
        """
        results: List[Tuple[int, int]] = []
        node = self._root
        for i in range(pos, len(data)):
            node = node.get(data[i])
            if node is None:
                break
            if _LEAF in node:
                if max_results is not None and len(results) >= max_results:
                    break
                results.append((i + 1 - pos, node[_LEAF]))
        return results

    def max_prefix_results(self) -> int:
        """Largest number of matches any query can produce against this index."""
        longest = 0
        for key in self._keys:
            node = self._root
            count = 0
            for byte in key:
                node = node[byte]
                if _LEAF in node:
                    count += 1
            longest = max(longest, count)
        return longest

    def to_bytes(self) -> bytes:
        """
        Serialize the index.

        Layout (little-endian): magic, uint32 key count, then for each key
        ``<uint32 length><key bytes><uint32 value>`` in insertion order.
        """
        out = bytearray(PREFIX_INDEX_MAGIC)
        out.extend(struct.pack("<I", len(self._keys)))
        for key, value in zip(self._keys, self._values):
            out.extend(struct.pack("<I", len(key)))
            out.extend(key)
            out.extend(struct.pack("<I", value))
        return bytes(out)

    @classmethod
    def from_bytes(cls, blob: bytes) -> "PrefixIndex":
        """Rebuild an index written by :meth:`to_bytes`."""
        if not blob.startswith(PREFIX_INDEX_MAGIC):
            raise CharsMapFormatError("Prefix index blob has no PIDX header")
        pos = len(PREFIX_INDEX_MAGIC)
        try:
            (count,) = struct.unpack_from("<I", blob, pos)
            pos += 4
            keys: List[bytes] = []
            values: List[int] = []
            for _ in range(count):
                (length,) = struct.unpack_from("<I", blob, pos)
                pos += 4
                end = pos + length
                if end > len(blob):
                    raise CharsMapFormatError("Truncated key in prefix index blob")
                keys.append(blob[pos:end])
                pos = end
                (value,) = struct.unpack_from("<I", blob, pos)
                pos += 4
                values.append(value)
        except struct.error as e:
            raise CharsMapFormatError(f"Truncated prefix index blob: {e}") from e
        if pos != len(blob):
            raise CharsMapFormatError("Trailing bytes in prefix index blob")
        try:
            return cls(keys, values)
        except ValueError as e:
            raise CharsMapFormatError(f"Invalid prefix index blob: {e}") from e


def _unit_has_leaf(unit: int) -> bool:
    return ((unit >> 8) & 1) == 1


def _unit_value(unit: int) -> int:
    return unit & ((1 << 31) - 1)


def _unit_label(unit: int) -> int:
    return unit & ((1 << 31) | 0xFF)


def _unit_offset(unit: int) -> int:
    return (unit >> 10) << ((unit & (1 << 9)) >> 6)


class DoubleArray:
    """Read-only darts-clone double-array trie."""

    def __init__(self, units: Sequence[int]):
        self._units = list(units)

    @classmethod
    def from_bytes(cls, blob: bytes) -> "DoubleArray":
        if len(blob) % 4 != 0:
            raise CharsMapFormatError(
                f"Double array size must be a multiple of 4 bytes, got {len(blob)}"
            )
        units = np.frombuffer(blob, dtype="<u4")
        return cls(units.tolist())

    def __len__(self) -> int:
        return len(self._units)

    def common_prefix_search(self, data: bytes, pos: int = 0, max_results: Optional[int] = None) -> List[Tuple[int, int]]:
        """Same contract as :meth:`PrefixIndex.common_prefix_search`."""
        units = self._units
        results: List[Tuple[int, int]] = []
        if not units:
            return results

        num_units = len(units)
        node_pos = _unit_offset(units[0])
        for i in range(pos, len(data)):
            label = data[i]
            node_pos ^= label
            if node_pos >= num_units:
                break
            unit = units[node_pos]
            if _unit_label(unit) != label:
                break
            node_pos ^= _unit_offset(unit)
            if _unit_has_leaf(unit):
                if max_results is not None and len(results) >= max_results:
                    break
                if node_pos >= num_units:
                    break
                results.append((i + 1 - pos, _unit_value(units[node_pos])))
        return results


def load_prefix_index(blob: bytes) -> Union[PrefixIndex, DoubleArray]:
    """Open a serialized trie, choosing the reader from the blob header."""
    if blob.startswith(PREFIX_INDEX_MAGIC):
        return PrefixIndex.from_bytes(blob)
    return DoubleArray.from_bytes(blob)


def build_key_value_index(rules: Dict[bytes, int]) -> PrefixIndex:
    """Build a PrefixIndex from a {key: value} mapping, keys in sorted order."""
    keys = sorted(rules)
    return PrefixIndex(keys, [rules[k] for k in keys])
