import random

import pytest

from pieceseg import ConfigurationError, ModelConfig, Piece, PieceType, Vocabulary

from .adapters import add_pieces, make_base_config


def test_lookup_in_both_directions():
    config = make_base_config()
    add_pieces(config, {"a": 0.1, "b": 0.2})
    vocab = Vocabulary(config)

    assert vocab.ok
    assert len(vocab) == 5
    assert vocab.piece_to_id("a") == 3
    assert vocab.piece_to_id(b"b") == 4
    assert vocab.id_to_piece(3) == "a"
    assert vocab.get_score(4) == pytest.approx(0.2)


def test_missing_piece_maps_to_unknown():
    config = make_base_config()
    add_pieces(config, {"a": 0.1})
    vocab = Vocabulary(config)

    assert vocab.unk_id == 0
    assert vocab.piece_to_id("missing") == 0
    assert vocab.piece_to_id("") == 0


def test_categories():
    config = make_base_config()
    add_pieces(config, {"a": 0.0})
    config.add_piece("<sep>", type=PieceType.USER_DEFINED)
    config.add_piece("ab", type=PieceType.UNUSED)
    vocab = Vocabulary(config)

    assert vocab.is_unknown(0)
    assert vocab.is_control(1) and vocab.is_control(2)
    assert not vocab.is_control(3)
    assert vocab.is_user_defined(4)
    assert vocab.is_unused(5)
    # Unused pieces stay addressable
    assert vocab.piece_to_id("ab") == 5
    assert vocab.piece_to_id("<s>") == 1
    assert "<sep>" in vocab.prefix_matcher
    assert "a" not in vocab.prefix_matcher


def test_reserved_pieces_are_not_in_normal_map():
    vocab = Vocabulary(make_base_config())
    assert b"<unk>" in vocab.reserved_id_map
    assert b"<s>" not in vocab.pieces


def test_special_piece_names():
    vocab = Vocabulary(make_base_config(pad_piece=""))
    assert vocab.unk_piece == "<unk>"
    assert vocab.bos_piece == "<s>"
    assert vocab.eos_piece == "</s>"
    assert vocab.pad_piece == "<pad>"


def test_id_out_of_range():
    vocab = Vocabulary(make_base_config())
    with pytest.raises(IndexError):
        vocab.id_to_piece(3)
    with pytest.raises(IndexError):
        vocab.get_score(-1)


@pytest.mark.parametrize("pieces, message", [
    ([Piece("<unk>", type=PieceType.UNKNOWN), Piece("")], "must not be empty"),
    ([Piece("<unk>", type=PieceType.UNKNOWN), Piece("a"), Piece("a")], "a is already defined"),
    ([Piece("<unk>", type=PieceType.UNKNOWN), Piece("<unk>", type=PieceType.CONTROL)], "already defined"),
    ([Piece("<s>", type=PieceType.CONTROL), Piece("<s>")], "already defined"),
    ([Piece("<unk>", type=PieceType.UNKNOWN), Piece("<unk2>", type=PieceType.UNKNOWN)], "unk is already defined"),
    ([Piece("a"), Piece("<s>", type=PieceType.CONTROL)], "unk is not defined"),
    ([], "unk is not defined"),
])
def test_invalid_configurations_set_status(pieces, message):
    vocab = Vocabulary(ModelConfig(pieces=pieces))
    assert not vocab.ok
    assert isinstance(vocab.status, ConfigurationError)
    assert message in str(vocab.status)


def test_random_vocabulary_round_trips_ids():
    rng = random.Random(1234)
    alphabet = "abcdefghij▁あいう"
    config = make_base_config()
    seen = set()
    while len(seen) < 500:
        piece = "".join(rng.choice(alphabet) for _ in range(rng.randint(1, 6)))
        if piece not in seen:
            seen.add(piece)
            config.add_piece(piece, rng.uniform(-10.0, 0.0))
    vocab = Vocabulary(config)

    assert vocab.ok
    assert len(vocab) == 503
    for id in range(3, len(vocab)):
        assert vocab.piece_to_id(vocab.id_to_piece(id)) == id
    assert vocab.piece_to_id("zzz") == vocab.unk_id
