# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Heuristic identifier similarity.

Two names are similar when, after stripping a common accessor prefix and a
common UI/role suffix, they are equal, one contains the other, or their edit
distance is below a third of the longer name.
"""

from typing import List

NAME_PREFIXES = ("get", "set", "is", "has", "on", "handle")
NAME_SUFFIXES = (
    "Component",
    "Container",
    "View",
    "Page",
    "Screen",
    "Handler",
    "Util",
    "Helper",
)


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance with unit insert/delete/substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous: List[int] = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def normalize_name(name: str) -> str:
    """Strip one known prefix and one known suffix from an identifier.

    A prefix is only stripped when the character after it is not lowercase
    (``getUser`` -> ``user``, but ``settings`` stays ``settings``). The first
    character of the remainder is lower-cased after a prefix strip.
    """
    result = name or ""
    for prefix in NAME_PREFIXES:
        if result.startswith(prefix) and len(result) > len(prefix):
            next_char = result[len(prefix)]
            if next_char == next_char.upper():
                result = result[len(prefix):]
                result = result[:1].lower() + result[1:]
                break

    for suffix in NAME_SUFFIXES:
        if result.endswith(suffix) and len(result) > len(suffix):
            result = result[: -len(suffix)]
            break

    return result


def are_names_similar(name1: str, name2: str) -> bool:
    """Return True when two identifiers plausibly refer to the same concept.

    ``name2`` may be a NodeMap key of the form ``"type:name"``; only the part
    after the colon is compared.

    Examples:
        >>> are_names_similar("getUserName", "userName")
        True
        >>> are_names_similar("Dog", "Cat")
        False
    """
    if ":" in (name2 or ""):
        name2 = name2.split(":", 1)[1]

    clean1 = normalize_name(name1)
    clean2 = normalize_name(name2)

    if clean1 == clean2:
        return True

    # An empty name is contained in everything
    if not clean1 or not clean2:
        return False

    if clean1 in clean2 or clean2 in clean1:
        return True

    distance = levenshtein_distance(clean1, clean2)
    return distance < max(len(clean1), len(clean2)) / 3
