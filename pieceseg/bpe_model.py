"""
BPE segmenter: greedy, score-driven merging of adjacent symbols.

Encoding starts from one symbol per code point (or per protected
user-defined token) and repeatedly merges the adjacent pair whose
concatenation is the highest-scoring vocabulary piece. Ties go to the
leftmost pair.

Working state is allocated per call:
- symbols: (start, length) views into the single normalized buffer, linked
  as a doubly linked list. Merging only ever grows the left view over its
  right neighbour, so every view stays contiguous.
- agenda: a binary heap of candidate merges. Candidates are never removed
  eagerly; a popped candidate whose symbols changed since it was pushed is
  recognized by its recorded combined length and dropped.
- rev_merge: for merges that produce an UNUSED piece, the two halves that
  formed it, so the piece can be split back before output.
"""

import heapq
from typing import Dict, List, Tuple, Union

from .vocab import Vocabulary
from .utils import to_bytes

EncodeResult = List[Tuple[bytes, int]]


class _Symbol:
    __slots__ = ("start", "length", "prev", "next", "freeze")

    def __init__(self, start: int, length: int, prev: int, next: int, freeze: bool):
        self.start = start
        self.length = length
        self.prev = prev    # -1 for the first symbol
        self.next = next    # -1 for the last symbol
        self.freeze = freeze  # protected token, never merged


class BPEModel(Vocabulary):
    """
    Merge-based segmenter over a fixed vocabulary.

    Usage:
        model = BPEModel(config)
        model.encode("▁hello".encode("utf-8"))   # [(b"\\xe2\\x96\\x81hello", 42)]
    """

    def encode(self, normalized: Union[str, bytes]) -> EncodeResult:
        """
        Segment normalized text into vocabulary pieces.

        Args:
            normalized: Output of the normalizer

        Returns:
            (piece bytes, id) pairs whose concatenation equals ``normalized``.
            Empty when the input is empty or the vocabulary failed validation.
        """
        if self.status is not None:
            return []
        data = to_bytes(normalized)
        if not data:
            return []

        # Split into code points, keeping user-defined tokens whole
        symbols: List[_Symbol] = []
        n = len(data)
        pos = 0
        while pos < n:
            index = len(symbols)
            length, found = self._matcher.prefix_match(data, pos)
            next_index = index + 1 if pos + length < n else -1
            symbols.append(_Symbol(pos, length, index - 1, next_index, found))
            pos += length

        agenda: List[Tuple[float, int, int, int]] = []
        rev_merge: Dict[bytes, Tuple[bytes, bytes]] = {}

        def maybe_add_pair(left: int, right: int) -> None:
            if left == -1 or right == -1:
                return
            ls = symbols[left]
            rs = symbols[right]
            if ls.freeze or rs.freeze:
                return
            assert ls.start + ls.length == rs.start, "symbols are not adjacent"
            size = ls.length + rs.length
            piece = data[ls.start:ls.start + size]
            id = self.pieces.get(piece)
            if id is None:
                return
            # heapq is a min-heap: negate the score, smaller left index first
            heapq.heappush(agenda, (-self.get_score(id), left, right, size))

            if self.is_unused(id):
                rev_merge[piece] = (
                    data[ls.start:ls.start + ls.length],
                    data[rs.start:rs.start + rs.length],
                )

        for i in range(1, len(symbols)):
            maybe_add_pair(i - 1, i)

        while agenda:
            _, left, right, size = heapq.heappop(agenda)
            ls = symbols[left]
            rs = symbols[right]

            # Stale candidate: one side was consumed or grown by an earlier merge
            if ls.length == 0 or rs.length == 0 or ls.length + rs.length != size:
                continue

            ls.length += rs.length
            ls.next = rs.next
            if rs.next >= 0:
                symbols[rs.next].prev = left
            rs.length = 0

            maybe_add_pair(ls.prev, left)
            maybe_add_pair(left, ls.next)

        output: EncodeResult = []

        def resegment(piece: bytes) -> None:
            id = self.piece_to_id(piece)
            if id < 0 or not self.is_unused(id):
                output.append((piece, id))
                return
            halves = rev_merge.get(piece)
            if halves is None:
                # Not reachable: every UNUSED merge result is recorded above
                output.append((piece, id))
                return
            resegment(halves[0])
            resegment(halves[1])

        index = 0
        while index != -1:
            assert 0 <= index < len(symbols)
            sym = symbols[index]
            resegment(data[sym.start:sym.start + sym.length])
            index = sym.next

        return output
