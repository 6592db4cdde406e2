"""
Model configuration: the vocabulary source and normalization settings.

A ModelConfig lists pieces in id order together with the normalizer spec and
the handful of trainer-level flags the run-time path reads. It can be stored
as JSON or read from an upstream SentencePiece ``.model`` file.
"""

import base64
import json
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any, Dict, List

from .errors import ConfigurationError
from .normalizer import NormalizerSpec


class PieceType(IntEnum):
    """Piece categories, numbered as in the upstream model schema."""
    NORMAL = 1
    UNKNOWN = 2
    CONTROL = 3
    USER_DEFINED = 4
    UNUSED = 5


# Upstream BYTE pieces (type 6) behave like normal pieces here
_UPSTREAM_BYTE_TYPE = 6


@dataclass(frozen=True)
class Piece:
    """One vocabulary entry."""
    piece: str
    score: float = 0.0
    type: PieceType = PieceType.NORMAL


@dataclass
class ModelConfig:
    """
    Configuration object consumed read-only by the vocabulary and normalizer.

    Usage:
        config = ModelConfig(pieces=[
            Piece("<unk>", type=PieceType.UNKNOWN),
            Piece("<s>", type=PieceType.CONTROL),
            Piece("</s>", type=PieceType.CONTROL),
            Piece("a", 0.1),
        ])
        config.save_json("model.json")
    """
    pieces: List[Piece] = field(default_factory=list)
    normalizer_spec: NormalizerSpec = field(default_factory=NormalizerSpec)
    model_type: str = "bpe"
    treat_whitespace_as_suffix: bool = False
    unk_piece: str = "<unk>"
    bos_piece: str = "<s>"
    eos_piece: str = "</s>"
    pad_piece: str = "<pad>"
    unk_surface: str = " ⁇ "

    def add_piece(self, piece: str, score: float = 0.0, type: PieceType = PieceType.NORMAL) -> int:
        """Append a piece and return its id."""
        self.pieces.append(Piece(piece, score, PieceType(type)))
        return len(self.pieces) - 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["pieces"] = [
            {"piece": p.piece, "score": p.score, "type": PieceType(p.type).name}
            for p in self.pieces
        ]
        spec = data["normalizer_spec"]
        spec["precompiled_charsmap"] = base64.b64encode(self.normalizer_spec.precompiled_charsmap).decode("ascii")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelConfig":
        """
        Build a configuration from the output of :meth:`to_dict`.

        Raises:
            ConfigurationError: If a piece type or field is not recognized
        """
        data = dict(data)
        try:
            pieces = [
                Piece(
                    p["piece"],
                    float(p.get("score", 0.0)),
                    PieceType[p["type"]] if isinstance(p.get("type"), str) else PieceType(p.get("type", 1)),
                )
                for p in data.pop("pieces", [])
            ]
            spec_data = dict(data.pop("normalizer_spec", {}))
            charsmap = spec_data.get("precompiled_charsmap", "")
            spec_data["precompiled_charsmap"] = base64.b64decode(charsmap) if charsmap else b""
            normalizer_spec = NormalizerSpec(**spec_data)
            return cls(pieces=pieces, normalizer_spec=normalizer_spec, **data)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid model configuration: {e}") from e

    def save_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load_json(cls, path: str) -> "ModelConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_sentencepiece(cls, model_path: str) -> "ModelConfig":
        """
        Read an upstream SentencePiece ``.model`` file.

        Requires the ``sentencepiece`` package (its bundled protobuf schema).

        Args:
            model_path: Path to the serialized ModelProto

        Returns:
            ModelConfig with the model's pieces, normalizer spec and flags
        """
        from sentencepiece import sentencepiece_model_pb2

        proto = sentencepiece_model_pb2.ModelProto()
        with open(model_path, "rb") as f:
            proto.ParseFromString(f.read())
        return cls.from_proto(proto)

    @classmethod
    def from_proto(cls, proto: Any) -> "ModelConfig":
        """
        Convert a parsed upstream ModelProto message.

        Raises:
            ConfigurationError: If a piece has a type this engine does not know
        """
        pieces = []
        for i, sp in enumerate(proto.pieces):
            try:
                piece_type = PieceType.NORMAL if sp.type == _UPSTREAM_BYTE_TYPE else PieceType(sp.type)
                pieces.append(Piece(sp.piece, float(sp.score), piece_type))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid piece {i} in model proto: {e}") from e

        ns = proto.normalizer_spec
        normalizer_spec = NormalizerSpec(
            name=ns.name,
            precompiled_charsmap=bytes(ns.precompiled_charsmap),
            add_dummy_prefix=ns.add_dummy_prefix,
            remove_extra_whitespaces=ns.remove_extra_whitespaces,
            escape_whitespaces=ns.escape_whitespaces,
            normalization_rule_tsv=ns.normalization_rule_tsv,
        )

        ts = proto.trainer_spec
        # TrainerSpec.ModelType: UNIGRAM=1, BPE=2, WORD=3, CHAR=4
        model_type = {1: "unigram", 2: "bpe", 3: "word", 4: "char"}.get(ts.model_type, "unigram")
        return cls(
            pieces=pieces,
            normalizer_spec=normalizer_spec,
            model_type=model_type,
            treat_whitespace_as_suffix=ts.treat_whitespace_as_suffix,
            unk_piece=ts.unk_piece,
            bos_piece=ts.bos_piece,
            eos_piece=ts.eos_piece,
            pad_piece=ts.pad_piece,
            unk_surface=ts.unk_surface,
        )
