import pytest

from pieceseg import ConfigurationError, PieceType, Tokenizer, compile_chars_map

from .adapters import WS, add_pieces, get_tokenizer, make_base_config, make_hello_world_config


@pytest.fixture
def tokenizer():
    return get_tokenizer(make_hello_world_config())


def test_encode_as_pieces(tokenizer):
    assert tokenizer.ok
    assert tokenizer.encode_as_pieces("hello world") == [WS + "hello", WS + "world"]
    assert tokenizer.encode_as_pieces("  hello    world ") == [WS + "hello", WS + "world"]


def test_encode_returns_ids(tokenizer):
    ids = tokenizer.encode("hello world")
    assert ids == [tokenizer.piece_to_id(WS + "hello"), tokenizer.piece_to_id(WS + "world")]
    assert tokenizer.encode("") == []
    assert tokenizer.encode_as_pieces("") == []


def test_decode_restores_text(tokenizer):
    ids = tokenizer.encode("hello world")
    assert tokenizer.decode(ids) == "hello world"
    assert tokenizer.decode([tokenizer.bos_id] + ids + [tokenizer.eos_id]) == "hello world"
    assert tokenizer.decode_pieces([WS + "hello", WS + "world"]) == "hello world"
    assert tokenizer.decode([]) == ""


def test_decode_unknown_piece(tokenizer):
    ids = tokenizer.encode("hello zz")
    assert ids[-2:] == [tokenizer.unk_id, tokenizer.unk_id]
    assert tokenizer.decode(ids) == "hello  ⁇  ⁇ "


def test_decode_rejects_out_of_range_ids(tokenizer):
    with pytest.raises(ValueError):
        tokenizer.decode([len(tokenizer)])
    with pytest.raises(ValueError):
        tokenizer.decode([-1])


def test_encode_with_offsets(tokenizer):
    text = "hello world"
    pieces = tokenizer.encode_with_offsets(text)

    assert [p.piece for p in pieces] == [WS + "hello", WS + "world"]
    assert [(p.begin, p.end) for p in pieces] == [(0, 5), (5, 11)]
    assert [p.surface for p in pieces] == ["hello", " world"]
    assert "".join(p.surface for p in pieces) == text


def test_encode_with_offsets_after_rewrites():
    config = make_hello_world_config()
    # Fullwidth h folds to ASCII
    config.normalizer_spec.precompiled_charsmap = compile_chars_map({(0xFF48,): (0x68,)})
    tokenizer = get_tokenizer(config)
    text = "ｈello world"

    pieces = tokenizer.encode_with_offsets(text)

    assert [p.piece for p in pieces] == [WS + "hello", WS + "world"]
    assert pieces[0].surface == "ｈello"
    assert pieces[0].end == len("ｈello".encode("utf-8"))


def test_special_ids(tokenizer):
    assert tokenizer.unk_id == 0
    assert tokenizer.bos_id == 1
    assert tokenizer.eos_id == 2
    assert tokenizer.pad_id == -1
    assert tokenizer.id_to_piece(1) == "<s>"
    assert tokenizer.vocab_size == len(tokenizer) == 21


def test_user_defined_piece_survives_rules():
    config = make_hello_world_config()
    config.add_piece("<sep>", type=PieceType.USER_DEFINED)
    config.normalizer_spec.precompiled_charsmap = compile_chars_map({(0x3C,): (0x5B,)})
    tokenizer = get_tokenizer(config)

    assert tokenizer.normalize("hello<sep><x")[0] == "▁hello<sep>[x".encode("utf-8")
    assert tokenizer.encode_as_pieces("hello<sep>world") == [WS + "hello", "<sep>", "w", "or", "ld"]
    assert tokenizer.decode(tokenizer.encode("hello<sep>world")) == "hello<sep>world"


def test_whitespace_as_suffix():
    config = make_base_config(treat_whitespace_as_suffix=True)
    add_pieces(config, {"h": 0.0, "i": 0.0, WS: 0.0, "hi": 1.0, "hi" + WS: 2.0})
    tokenizer = get_tokenizer(config)

    assert tokenizer.encode_as_pieces("hi hi") == ["hi" + WS, "hi" + WS]
    assert tokenizer.decode(tokenizer.encode("hi hi")) == "hi hi"


def test_encode_iterable(tokenizer):
    lines = ["hello world", "", "hello"]
    ids = list(tokenizer.encode_iterable(lines))
    expected = tokenizer.encode("hello world") + tokenizer.encode("hello")
    assert ids == expected


def test_invalid_vocabulary_raises_on_use():
    config = make_base_config()
    config.add_piece("a")
    config.add_piece("a")
    tokenizer = get_tokenizer(config)

    assert not tokenizer.ok
    with pytest.raises(ConfigurationError, match="already defined"):
        tokenizer.encode("a")
    with pytest.raises(ConfigurationError):
        tokenizer.decode([0])


def test_unsupported_model_type():
    tokenizer = get_tokenizer(make_hello_world_config(model_type="unigram"))
    assert not tokenizer.ok
    with pytest.raises(ConfigurationError, match="unigram"):
        tokenizer.encode("hello")


def test_broken_rule_blob_raises_on_use():
    config = make_hello_world_config()
    config.normalizer_spec.precompiled_charsmap = b"\xff\xff\xff\xff"
    tokenizer = get_tokenizer(config)
    assert not tokenizer.ok
    with pytest.raises(ConfigurationError):
        tokenizer.encode("hello")


def test_rule_tsv_is_compiled(tmp_path):
    path = tmp_path / "rules.tsv"
    path.write_text("FF48\t68\n", encoding="utf-8")
    config = make_hello_world_config()
    config.normalizer_spec.normalization_rule_tsv = str(path)

    tokenizer = get_tokenizer(config)

    assert tokenizer.normalizer.spec.name == "user_defined"
    assert tokenizer.encode_as_pieces("ｈello") == [WS + "hello"]


def test_save_and_load_json(tokenizer, tmp_path):
    path = tmp_path / "model.json"
    tokenizer.save_files(str(path))
    loaded = Tokenizer.from_files(str(path))

    assert loaded.vocab_size == tokenizer.vocab_size
    assert loaded.encode("hello world") == tokenizer.encode("hello world")


def test_save_and_load_pickle(tokenizer, tmp_path):
    path = tmp_path / "model.pkl"
    tokenizer.save_pickle(str(path))
    loaded = Tokenizer.from_pickle(str(path))

    assert loaded.encode("hello world") == tokenizer.encode("hello world")


def test_from_pickle_rejects_other_objects(tmp_path):
    import pickle

    path = tmp_path / "other.pkl"
    with open(path, "wb") as f:
        pickle.dump({"pieces": []}, f)
    with pytest.raises(ValueError, match="Expected ModelConfig"):
        Tokenizer.from_pickle(str(path))
