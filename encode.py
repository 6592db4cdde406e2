#!/usr/bin/env python3
"""
Command-line Text Encoding

Normalizes and segments text with a model configuration and prints the
result as pieces, ids, byte offsets or normalized text.

Examples:
    python encode.py --model_file sample_data/model.json --input "Hello world"
    python encode.py --model_file bpe.model --input_file corpus.txt \\
        --output_format id --output_npy corpus_ids.npy
"""

import argparse
import sys
from typing import Iterator, List

import numpy as np

from pieceseg import ConfigurationError, Tokenizer


def load_tokenizer(model_file: str) -> Tokenizer:
    """Load a tokenizer, picking the reader from the file extension."""
    if model_file.endswith(".model"):
        return Tokenizer.from_sentencepiece(model_file)
    if model_file.endswith(".pkl"):
        return Tokenizer.from_pickle(model_file)
    return Tokenizer.from_files(model_file)


def iter_lines(args) -> Iterator[str]:
    if args.input is not None:
        yield args.input
        return
    with open(args.input_file, "r", encoding="utf-8") as f:
        for line in f:
            yield line.rstrip("\n")


def format_line(tokenizer: Tokenizer, line: str, output_format: str) -> str:
    if output_format == "piece":
        return " ".join(tokenizer.encode_as_pieces(line))
    if output_format == "id":
        return " ".join(str(i) for i in tokenizer.encode(line))
    if output_format == "offsets":
        return " ".join(f"{p.piece}:{p.id}@{p.begin}-{p.end}" for p in tokenizer.encode_with_offsets(line))
    normalized, _ = tokenizer.normalize(line)
    return normalized.decode("utf-8", errors="replace")


def main():
    """Main function for command-line encoding."""
    parser = argparse.ArgumentParser(description="Encode text into subword pieces")

    parser.add_argument("--model_file", type=str, required=True,
                        help="Model configuration (.json, .pkl, or SentencePiece .model)")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", type=str, default=None,
                        help="Text to encode")
    source.add_argument("--input_file", type=str, default=None,
                        help="File to encode, one sentence per line")
    parser.add_argument("--output_format", type=str, default="piece",
                        choices=["piece", "id", "offsets", "normalized"],
                        help="What to print for each line")
    parser.add_argument("--output_npy", type=str, default=None,
                        help="Also save all ids as a flat .npy array")

    args = parser.parse_args()

    tokenizer = load_tokenizer(args.model_file)
    if not tokenizer.ok:
        print(f"Failed to load model: {tokenizer.status}", file=sys.stderr)
        sys.exit(1)
    print(f"Tokenizer loaded with vocab size: {tokenizer.vocab_size}", file=sys.stderr)

    all_ids: List[int] = []
    try:
        for line in iter_lines(args):
            print(format_line(tokenizer, line, args.output_format))
            if args.output_npy:
                all_ids.extend(tokenizer.encode(line))
    except ConfigurationError as e:
        print(f"Encoding failed: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output_npy:
        dtype = np.uint16 if tokenizer.vocab_size <= np.iinfo(np.uint16).max else np.int32
        ids = np.array(all_ids, dtype=dtype)
        np.save(args.output_npy, ids)
        print(f"Saved ids: {args.output_npy} ({len(ids):,} tokens, dtype={ids.dtype})", file=sys.stderr)


if __name__ == "__main__":
    main()
