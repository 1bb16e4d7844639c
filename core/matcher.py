"""
Similarity Matcher - Fuzzy Deduplication of Raw Records

Different sources name the same asset differently ("Bitcoin", "BitCoin",
"BTC"...). This module decides which RawRecords describe the same asset.

Pipeline:
    1. normalize_text: lowercase and keep only [a-z0-9]
    2. similarity: Levenshtein distance turned into a 0-100 score
    3. find_matches: anchor-based greedy clustering over the record list

Anchor-Based Clustering:
    Each group is seeded by the first unassigned record. Later records are
    compared against the SEED only, never against other members, so grouping
    is not transitive:

        seed "aaaaaaaaaa", member "aaaaaaaabb" (80), candidate "aaaaaabbbb"
        -> candidate scores 60 against the seed and opens its own group,
           even though it scores 80 against the member.

    Output parity with existing consumers depends on this behavior.

Example:
    >>> similarity("Bitcoin", "BitCoin")
    100
    >>> similarity("Bitcoin", "Bitcoin Cash")
    64
    >>> slugify("Binance Coin (BNB)")
    'binance-coin-bnb'
"""

import math
import re
from dataclasses import dataclass
from typing import List, Sequence

from core.schemas import RawRecord


DEFAULT_MATCH_THRESHOLD = 80
"""Minimum similarity score for a record to join a seed's group."""

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


# ============================================
# Text Normalization
# ============================================

def normalize_text(text: str) -> str:
    """
    Normalize a name for comparison.

    Lowercases, removes every character outside [a-z0-9] and trims.

    Example:
        >>> normalize_text("  Binance Coin (BNB) ")
        'binancecoinbnb'
    """
    return _NON_ALNUM.sub("", text.lower()).strip()


def slugify(name: str) -> str:
    """
    Derive a URL-safe identifier from a display name.

    Every run of characters outside [a-z0-9] becomes a single "-", and
    leading/trailing "-" are removed. A name with no letters or digits
    yields "".

    Example:
        >>> slugify("Binance Coin (BNB)")
        'binance-coin-bnb'
    """
    return _NON_ALNUM_RUN.sub("-", name.lower()).strip("-")


# ============================================
# Similarity Scoring
# ============================================

def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance between two strings (unit-cost insert/delete/substitute).

    Uses the full dynamic-programming table, O(len(a) * len(b)) time and space.
    """
    rows, cols = len(b), len(a)
    matrix = [[0] * (cols + 1) for _ in range(rows + 1)]

    for i in range(rows + 1):
        matrix[i][0] = i
    for j in range(cols + 1):
        matrix[0][j] = j

    for i in range(1, rows + 1):
        for j in range(1, cols + 1):
            if b[i - 1] == a[j - 1]:
                matrix[i][j] = matrix[i - 1][j - 1]
            else:
                matrix[i][j] = min(
                    matrix[i - 1][j - 1] + 1,  # substitute
                    matrix[i][j - 1] + 1,      # insert
                    matrix[i - 1][j] + 1,      # delete
                )

    return matrix[rows][cols]


def _round_half_up(value: float) -> int:
    # Built-in round() is banker's rounding; scores round .5 upwards.
    return int(math.floor(value + 0.5))


def similarity(a: str, b: str) -> int:
    """
    Similarity score between two names, from 0 (unrelated) to 100 (equal).

    Both names are normalized first. Equal normalized names score 100;
    otherwise the score is

        round(((max_len - distance) / max_len) * 100)

    with halves rounded up. The score is symmetric in its arguments.

    Args:
        a: First name
        b: Second name

    Returns:
        int: Score in [0, 100]
    """
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)

    if norm_a == norm_b:
        return 100

    max_len = max(len(norm_a), len(norm_b))
    if max_len == 0:
        return 0

    distance = levenshtein_distance(norm_a, norm_b)
    return _round_half_up(((max_len - distance) / max_len) * 100)


# ============================================
# Clustering
# ============================================

@dataclass(frozen=True)
class MatchGroup:
    """
    Records judged to describe the same asset.

    Attributes:
        key: The seed record's name, unmodified
        records: Seed first, then joined members in input order
    """

    key: str
    records: List[RawRecord]

    @property
    def seed(self) -> RawRecord:
        return self.records[0]

    def __len__(self) -> int:
        return len(self.records)


def find_matches(
    records: Sequence[RawRecord],
    threshold: int = DEFAULT_MATCH_THRESHOLD
) -> List[MatchGroup]:
    """
    Group records by name similarity using anchor-based greedy clustering.

    For each record not yet assigned (in input order) a new group is opened
    with that record as seed. Every later unassigned record scoring at least
    `threshold` against the seed joins the group. Each record ends up in
    exactly one group.

    Args:
        records: Records to cluster, in a deterministic order
        threshold: Minimum similarity (0-100) to join a group

    Returns:
        List[MatchGroup]: Groups in discovery order

    Raises:
        ValueError: If threshold is outside [0, 100]

    Example:
        >>> groups = find_matches(records, threshold=85)
        >>> [g.key for g in groups]
        ['Bitcoin', 'Bitcoin Cash']
    """
    if not 0 <= threshold <= 100:
        raise ValueError(f"threshold must be between 0 and 100, got {threshold}")

    groups: List[MatchGroup] = []
    assigned = [False] * len(records)

    for i, seed in enumerate(records):
        if assigned[i]:
            continue

        assigned[i] = True
        members = [seed]

        for j in range(i + 1, len(records)):
            if assigned[j]:
                continue
            if similarity(seed.name, records[j].name) >= threshold:
                members.append(records[j])
                assigned[j] = True

        groups.append(MatchGroup(key=seed.name, records=members))

    return groups
