from __future__ import annotations

from collections.abc import Iterable
from types import SimpleNamespace

import numpy as np

from pieceseg import (
    BPEModel,
    ModelConfig,
    Normalizer,
    NormalizerSpec,
    PieceType,
    PrefixMatcher,
    SPACE_SYMBOL,
    Tokenizer,
)

WS = SPACE_SYMBOL


def make_base_config(**kwargs) -> ModelConfig:
    """Return a configuration holding only <unk>, <s> and </s> (ids 0, 1, 2).

    Keyword arguments are passed through to ModelConfig.
    """
    config = ModelConfig(**kwargs)
    config.add_piece("<unk>", type=PieceType.UNKNOWN)
    config.add_piece("<s>", type=PieceType.CONTROL)
    config.add_piece("</s>", type=PieceType.CONTROL)
    return config


def add_pieces(config: ModelConfig, pieces: dict[str, float], type: PieceType = PieceType.NORMAL) -> None:
    """Append pieces with the given scores in dict order."""
    for piece, score in pieces.items():
        config.add_piece(piece, score, type)


def identity_spec(**kwargs) -> NormalizerSpec:
    """A normalizer spec with every whitespace feature turned off."""
    values = dict(add_dummy_prefix=False, remove_extra_whitespaces=False, escape_whitespaces=False)
    values.update(kwargs)
    return NormalizerSpec(**values)


def get_normalizer(
    spec: NormalizerSpec | None = None,
    treat_whitespace_as_suffix: bool = False,
    protected: Iterable[str] = (),
) -> Normalizer:
    """Build a normalizer, optionally protecting literal tokens from rewriting."""
    normalizer = Normalizer(spec or NormalizerSpec(), treat_whitespace_as_suffix)
    protected = list(protected)
    if protected:
        normalizer.set_prefix_matcher(PrefixMatcher(protected))
    return normalizer


def get_bpe_model(config: ModelConfig) -> BPEModel:
    return BPEModel(config)


def run_encode_pieces(model: BPEModel, text: str) -> list[str]:
    """Encode already-normalized text and return the piece strings."""
    return [piece.decode("utf-8") for piece, _ in model.encode(text.encode("utf-8"))]


def make_hello_world_config(**kwargs) -> ModelConfig:
    """A small BPE vocabulary that merges "hello world" into two pieces."""
    config = make_base_config(**kwargs)
    add_pieces(config, {c: -10.0 for c in [WS, "h", "e", "l", "o", "w", "r", "d"]})
    add_pieces(config, {
        "he": 5.0,
        "ll": 4.0,
        "hell": 3.0,
        "hello": 2.0,
        WS + "hello": 1.0,
        WS + "w": 0.5,
        "or": 0.4,
        WS + "wor": 0.3,
        "ld": 0.2,
        WS + "world": 0.1,
    })
    return config


def get_tokenizer(config: ModelConfig) -> Tokenizer:
    """Given a model configuration, return a tokenizer that normalizes and segments with it.

    Args:
        config (ModelConfig): Pieces in id order (ids are list positions) plus normalizer settings.
            USER_DEFINED pieces are never split or rewritten.

    Returns:
        A Tokenizer over the configuration. Invalid configurations do not raise here;
        check `tokenizer.ok` or expect encode/decode to raise.
    """
    return Tokenizer(config)


def make_darts_units() -> bytes:
    """Serialized darts-clone double array holding {b"a": 0, b"ab": 2}.

    Unit layout: bits 0-7 label, bit 8 has-leaf, bits 10-31 offset; value
    units set bit 31.
    """
    units = np.zeros(1024, dtype="<u4")
    units[0] = 256 << 10                        # root, offset 256
    units[353] = (512 << 10) | (1 << 8) | 0x61  # 'a', has leaf, offset 512
    units[865] = (1 << 31) | 0                  # value of "a"
    units[771] = (256 << 10) | (1 << 8) | 0x62  # 'b', has leaf, offset 256
    units[515] = (1 << 31) | 2                  # value of "ab"
    return units.tobytes()


def make_fake_proto(pieces: list[tuple[str, float, int]], model_type: int = 2) -> SimpleNamespace:
    """An object shaped like an upstream ModelProto, with proto default field values."""
    return SimpleNamespace(
        pieces=[SimpleNamespace(piece=piece, score=score, type=type) for piece, score, type in pieces],
        normalizer_spec=SimpleNamespace(
            name="identity",
            precompiled_charsmap=b"",
            add_dummy_prefix=True,
            remove_extra_whitespaces=True,
            escape_whitespaces=True,
            normalization_rule_tsv="",
        ),
        trainer_spec=SimpleNamespace(
            model_type=model_type,
            treat_whitespace_as_suffix=False,
            unk_piece="<unk>",
            bos_piece="<s>",
            eos_piece="</s>",
            pad_piece="<pad>",
            unk_surface=" ⁇ ",
        ),
    )
