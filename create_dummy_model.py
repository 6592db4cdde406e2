#!/usr/bin/env python3
"""
Create a dummy model configuration for trying out encoding.

Writes sample_data/model.json (pieces + normalizer settings) and
sample_data/rules.tsv (a few normalization rules compiled into the model).
"""

import os

from pieceseg import ModelConfig, PieceType, SPACE_SYMBOL, save_chars_map


def create_dummy_model(output_dir: str = "sample_data") -> ModelConfig:
    """Create a minimal model configuration for testing."""
    os.makedirs(output_dir, exist_ok=True)

    config = ModelConfig()

    # Reserved pieces
    config.add_piece("<unk>", type=PieceType.UNKNOWN)
    config.add_piece("<s>", type=PieceType.CONTROL)
    config.add_piece("</s>", type=PieceType.CONTROL)
    config.add_piece("<sep>", type=PieceType.USER_DEFINED)

    # Individual characters
    chars = [SPACE_SYMBOL] + list("abcdefghijklmnopqrstuvwxyz") + list("ABCDEFGHIJKLMNOPQRSTUVWXYZ") + list(".,!?'-:;0123456789")

    # Merges in order of creation; earlier merges score higher
    merges = [
        (SPACE_SYMBOL, "t"), (SPACE_SYMBOL + "t", "h"), (SPACE_SYMBOL + "th", "e"),
        ("i", "n"), ("in", "g"), ("e", "r"), ("o", "n"), ("a", "n"),
        (SPACE_SYMBOL, "a"), (SPACE_SYMBOL + "a", "nd"), ("n", "d"),
        ("l", "l"), ("e", "ll"), ("h", "ell"), ("hell", "o"),
        (SPACE_SYMBOL, "w"), ("o", "r"), (SPACE_SYMBOL + "w", "or"), ("l", "d"), (SPACE_SYMBOL + "wor", "ld"),
    ]

    merged = [left + right for left, right in merges]
    for i, piece in enumerate(merged):
        config.add_piece(piece, score=-float(i))
    for i, ch in enumerate(chars):
        if ch not in merged:
            config.add_piece(ch, score=-float(len(merged) + i))

    # Fullwidth Latin letters fold to ASCII
    rules = {(0xFF21 + i,): (0x41 + i,) for i in range(26)}
    rules.update({(0xFF41 + i,): (0x61 + i,) for i in range(26)})
    rules_path = os.path.join(output_dir, "rules.tsv")
    save_chars_map(rules, rules_path)
    config.normalizer_spec.normalization_rule_tsv = rules_path

    model_path = os.path.join(output_dir, "model.json")
    config.save_json(model_path)

    print(f"Created dummy model:")
    print(f"  Model: {model_path} ({len(config.pieces)} pieces)")
    print(f"  Merged pieces: {len(merged)}")
    print(f"  Normalization rules: {rules_path} ({len(rules)} rules)")
    print(f"  User-defined pieces: ['<sep>']")
    return config


if __name__ == "__main__":
    create_dummy_model()
