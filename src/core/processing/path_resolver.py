"""
Dotted path addressing into the raw sensor tree.

A source such as ``nct6798-isa-0290.+3\\.3V.in3_input`` is split on unescaped
dots; ``\\.`` stands for a literal dot inside one key.
"""
import math
from typing import Any, List, Mapping, Optional


def parse_source(source: str) -> List[str]:
    """Split a dotted source into its key segments, decoding ``\\.`` escapes."""
    segments: List[str] = []
    current: List[str] = []
    i = 0
    while i < len(source):
        char = source[i]
        if char == "\\" and i + 1 < len(source) and source[i + 1] == ".":
            current.append(".")
            i += 2
            continue
        if char == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    segments.append("".join(current))
    return segments


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def resolve(tree: Mapping[str, Any], source: str) -> Optional[float]:
    """
    Walk the tree along the source path.
    Returns the numeric leaf, or None when the path is unresolved: a missing
    key, a non-mapping intermediate node, or a non-numeric or non-finite leaf.
    """
    node: Any = tree
    for segment in parse_source(source):
        if not isinstance(node, Mapping) or segment not in node:
            return None
        node = node[segment]
    if not is_numeric(node):
        return None
    return float(node)
