"""
Normalization rule compiler.

Rules are authored as a TSV file of code point sequences:

    # source code points <TAB> replacement code points (hex)
    FF21	41
    2460	31
    41 0301	C1

and compiled into the rule blob the Normalizer loads. A chars map is a
``Dict[Tuple[int, ...], Tuple[int, ...]]`` from source to replacement code
points; an empty replacement deletes the source text.
"""

import dataclasses
from typing import Dict, Tuple

from .errors import ConfigurationError
from .normalizer import NormalizerSpec, decode_precompiled_charsmap, encode_precompiled_charsmap
from .prefix_index import MAX_TRIE_RESULTS, PrefixIndex, build_key_value_index, load_prefix_index

CharsMap = Dict[Tuple[int, ...], Tuple[int, ...]]

# Rule sets that need no Unicode tables
BUILTIN_RULES = ("identity", "")


def _parse_code_points(field: str, line_no: int) -> Tuple[int, ...]:
    try:
        return tuple(int(token, 16) for token in field.split())
    except ValueError as e:
        raise ConfigurationError(f"Line {line_no}: invalid code point in {field!r}") from e


def _code_points_to_bytes(code_points: Tuple[int, ...]) -> bytes:
    try:
        return "".join(chr(c) for c in code_points).encode("utf-8")
    except (ValueError, UnicodeEncodeError) as e:
        raise ConfigurationError(f"Invalid code point sequence {code_points}: {e}") from e


def load_chars_map(path: str) -> CharsMap:
    """
    Read a normalization rule TSV file.

    Args:
        path: Path to the TSV file

    Returns:
        Chars map from source code points to replacement code points

    Raises:
        ConfigurationError: On malformed lines
    """
    chars_map: CharsMap = {}
    with open(path, "r", encoding="utf-8") as f:
        for line_no, raw in enumerate(f, start=1):
            line = raw.split("#", 1)[0].rstrip("\r\n")
            if not line.strip():
                continue
            fields = line.split("\t")
            src = _parse_code_points(fields[0], line_no)
            if not src:
                raise ConfigurationError(f"Line {line_no}: empty source sequence")
            dst = _parse_code_points(fields[1], line_no) if len(fields) > 1 else ()
            chars_map[src] = dst
    return chars_map


def save_chars_map(chars_map: CharsMap, path: str) -> None:
    """Write a chars map as a rule TSV file, sources in sorted order."""
    with open(path, "w", encoding="utf-8") as f:
        for src in sorted(chars_map):
            src_field = " ".join(f"{c:04X}" for c in src)
            dst_field = " ".join(f"{c:04X}" for c in chars_map[src])
            f.write(f"{src_field}\t{dst_field}\n")


def compile_chars_map(chars_map: CharsMap) -> bytes:
    """
    Compile a chars map into a rule blob.

    Identical replacement strings share one pool entry.

    Raises:
        ConfigurationError: If a rule is malformed or a single query could
            return more than MAX_TRIE_RESULTS matches
    """
    pool = bytearray()
    offsets: Dict[bytes, int] = {}
    rules: Dict[bytes, int] = {}

    for src in sorted(chars_map):
        key = _code_points_to_bytes(src)
        if not key:
            raise ConfigurationError("Normalization rule source must not be empty")
        replacement = _code_points_to_bytes(chars_map[src])
        if b"\0" in replacement:
            raise ConfigurationError(f"Replacement for {src} contains NUL")
        if replacement not in offsets:
            offsets[replacement] = len(pool)
            pool.extend(replacement)
            pool.append(0)
        rules[key] = offsets[replacement]

    index = build_key_value_index(rules)
    num_results = index.max_prefix_results()
    if num_results > MAX_TRIE_RESULTS:
        raise ConfigurationError(
            f"Too many overlapping rules: {num_results} > {MAX_TRIE_RESULTS}"
        )
    return encode_precompiled_charsmap(index.to_bytes(), bytes(pool))


def decompile_chars_map(blob: bytes) -> CharsMap:
    """Recover the chars map from a blob produced by :func:`compile_chars_map`."""
    trie_blob, pool = decode_precompiled_charsmap(blob)
    index = load_prefix_index(trie_blob)
    if not isinstance(index, PrefixIndex):
        raise ConfigurationError("Only prefix index blobs can be decompiled")

    chars_map: CharsMap = {}
    for key, offset in index.items():
        end = pool.find(b"\0", offset)
        if end < 0:
            end = len(pool)
        src = tuple(ord(c) for c in key.decode("utf-8"))
        chars_map[src] = tuple(ord(c) for c in pool[offset:end].decode("utf-8"))
    return chars_map


def get_precompiled_charsmap(name: str) -> bytes:
    """Return the rule blob of a named built-in rule set."""
    if name in BUILTIN_RULES:
        return b""
    raise ConfigurationError(f"No precompiled charsmap is found: {name}")


def populate_normalizer_spec(spec: NormalizerSpec) -> NormalizerSpec:
    """
    Resolve the rule blob of a normalizer spec.

    A rule TSV is compiled into the blob and the result is named "user_defined";
    otherwise an empty blob is looked up by ``name``.

    Returns:
        A new NormalizerSpec; ``spec`` is not modified
    """
    if spec.normalization_rule_tsv:
        if spec.precompiled_charsmap:
            raise ConfigurationError("precompiled_charsmap is already defined.")
        chars_map = load_chars_map(spec.normalization_rule_tsv)
        return dataclasses.replace(
            spec,
            name="user_defined",
            precompiled_charsmap=compile_chars_map(chars_map),
        )

    name = spec.name or "identity"
    if spec.precompiled_charsmap:
        return dataclasses.replace(spec, name=name)
    return dataclasses.replace(spec, name=name, precompiled_charsmap=get_precompiled_charsmap(name))
