"""
Vocabulary table: id <-> piece lookup, scores and categories.

The table validates its configuration once. A table that fails validation
keeps the error in ``status`` and every encode/decode path built on it
refuses to run.
"""

from typing import Dict, Optional, Union

from .errors import ConfigurationError
from .matcher import PrefixMatcher
from .model_config import ModelConfig, Piece, PieceType

# Categories looked up through the normal piece map. UNUSED pieces stay
# reachable so merges can pass through them.
_NORMAL_TYPES = (PieceType.NORMAL, PieceType.USER_DEFINED, PieceType.UNUSED)


class Vocabulary:
    """
    Ordered list of pieces with O(1) lookups in both directions.

    Ids are positions in ``config.pieces``. Unknown text resolves to the id
    of the single UNKNOWN piece.

    Usage:
        vocab = Vocabulary(config)
        if vocab.ok:
            vocab.piece_to_id("a")
    """

    def __init__(self, config: ModelConfig):
        """
        Args:
            config: Model configuration listing pieces in id order
        """
        self.config = config
        self.status: Optional[ConfigurationError] = None
        # piece bytes -> id for NORMAL, USER_DEFINED and UNUSED pieces
        self.pieces: Dict[bytes, int] = {}
        # piece bytes -> id for UNKNOWN and CONTROL pieces
        self.reserved_id_map: Dict[bytes, int] = {}
        self._unk_id = -1
        self._matcher = PrefixMatcher()
        self._initialize_pieces()

    def _initialize_pieces(self) -> None:
        user_defined_symbols = []
        unk_id = -1

        for i, sp in enumerate(self.config.pieces):
            if not sp.piece:
                self.status = ConfigurationError(f"Piece {i} must not be empty.")
                return

            key = sp.piece.encode("utf-8")
            if key in self.pieces or key in self.reserved_id_map:
                self.status = ConfigurationError(f"{sp.piece} is already defined.")
                return

            if sp.type in _NORMAL_TYPES:
                self.pieces[key] = i
            else:
                self.reserved_id_map[key] = i

            if sp.type == PieceType.USER_DEFINED:
                user_defined_symbols.append(key)

            if sp.type == PieceType.UNKNOWN:
                if unk_id >= 0:
                    self.status = ConfigurationError("unk is already defined.")
                    return
                unk_id = i

        if unk_id < 0:
            self.status = ConfigurationError("unk is not defined.")
            return

        self._unk_id = unk_id
        self._matcher = PrefixMatcher(user_defined_symbols)

    @property
    def ok(self) -> bool:
        return self.status is None

    @property
    def prefix_matcher(self) -> PrefixMatcher:
        """Boundary matcher over USER_DEFINED pieces."""
        return self._matcher

    @property
    def unk_id(self) -> int:
        return self._unk_id

    @property
    def unk_piece(self) -> str:
        return self.config.unk_piece or "<unk>"

    @property
    def bos_piece(self) -> str:
        return self.config.bos_piece or "<s>"

    @property
    def eos_piece(self) -> str:
        return self.config.eos_piece or "</s>"

    @property
    def pad_piece(self) -> str:
        return self.config.pad_piece or "<pad>"

    def piece_to_id(self, piece: Union[str, bytes]) -> int:
        """Id of ``piece``; the UNKNOWN id when it is absent or empty."""
        key = piece.encode("utf-8") if isinstance(piece, str) else piece
        reserved = self.reserved_id_map.get(key)
        if reserved is not None:
            return reserved
        return self.pieces.get(key, self._unk_id)

    def id_to_piece(self, id: int) -> str:
        return self._piece(id).piece

    def get_score(self, id: int) -> float:
        return self._piece(id).score

    def get_piece_size(self) -> int:
        return len(self.config.pieces)

    def __len__(self) -> int:
        return self.get_piece_size()

    def is_unknown(self, id: int) -> bool:
        return self._piece(id).type == PieceType.UNKNOWN

    def is_control(self, id: int) -> bool:
        return self._piece(id).type == PieceType.CONTROL

    def is_unused(self, id: int) -> bool:
        return self._piece(id).type == PieceType.UNUSED

    def is_user_defined(self, id: int) -> bool:
        return self._piece(id).type == PieceType.USER_DEFINED

    def _piece(self, id: int) -> Piece:
        if not 0 <= id < len(self.config.pieces):
            raise IndexError(f"Piece id {id} out of range [0, {len(self.config.pieces)})")
        return self.config.pieces[id]
