"""
Unit Tests for the Similarity Matcher

These tests verify that:
- Names are normalized to [a-z0-9]
- Similarity scores follow the Levenshtein formula with half-up rounding
- Scores are symmetric
- find_matches clusters against the seed only (non-transitive)
- find_matches always yields a partition of its input
- Slugs are derived as expected

Run with:
    pytest tests/unit/test_matcher.py -v
"""

import pytest

from core.matcher import (
    DEFAULT_MATCH_THRESHOLD,
    find_matches,
    levenshtein_distance,
    normalize_text,
    similarity,
    slugify,
)
from core.schemas import RawRecord


def make_record(name: str, source: str = "alpha", price: float = 1.0) -> RawRecord:
    return RawRecord(source=source, external_id=name, name=name, price=price)


def group_names(groups):
    return [[r.name for r in g.records] for g in groups]


# ============================================
# Normalization
# ============================================

class TestNormalizeText:
    """Tests for normalize_text"""

    def test_lowercases_and_strips_punctuation(self):
        assert normalize_text("  Binance Coin (BNB) ") == "binancecoinbnb"

    def test_keeps_digits(self):
        assert normalize_text("Galaxy S24 Ultra") == "galaxys24ultra"

    def test_drops_non_ascii_letters(self):
        assert normalize_text("Café Crème") == "cafcrme"

    def test_symbol_only_text_normalizes_to_empty(self):
        assert normalize_text("!!! ---") == ""


# ============================================
# Distance and Similarity
# ============================================

class TestLevenshteinDistance:
    """Tests for levenshtein_distance"""

    @pytest.mark.parametrize("a, b, expected", [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ])
    def test_known_distances(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected


class TestSimilarity:
    """Tests for similarity"""

    def test_identical_after_normalization_scores_100(self):
        assert similarity("Bitcoin", "BitCoin") == 100
        assert similarity("Bit-Coin!", "bitcoin") == 100

    @pytest.mark.parametrize("name", ["Bitcoin", "x", "Binance Coin (BNB)", "Apartment 4B"])
    def test_self_similarity_is_100(self, name):
        assert similarity(name, name) == 100

    @pytest.mark.parametrize("a, b", [
        ("Bitcoin", "Bitcoin Cash"),
        ("Ethereum", "Ethereum Classic"),
        ("kitten", "sitting"),
        ("abc", ""),
        ("iPhone 15 Pro", "iphone15"),
    ])
    def test_similarity_is_symmetric(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    def test_bitcoin_vs_bitcoin_cash(self):
        """bitcoin (7) vs bitcoincash (11): distance 4 -> 7/11 -> 64"""
        assert similarity("Bitcoin", "Bitcoin Cash") == 64

    def test_halves_round_up(self):
        """8 chars, distance 3 -> 62.5, which must round to 63"""
        assert similarity("abcdefgh", "abcdexyz") == 63

    def test_completely_different_scores_zero(self):
        assert similarity("abc", "xyz") == 0

    def test_against_empty_scores_zero(self):
        assert similarity("abc", "") == 0

    def test_two_empty_normalizations_are_equal(self):
        """Both normalize to "" and compare equal before the length check"""
        assert similarity("!!!", "???") == 100

    def test_result_is_int_in_range(self):
        score = similarity("Solana", "Solaris")
        assert isinstance(score, int)
        assert 0 <= score <= 100


# ============================================
# Clustering
# ============================================

class TestFindMatches:
    """Tests for find_matches"""

    def test_default_threshold_is_80(self):
        assert DEFAULT_MATCH_THRESHOLD == 80

    def test_empty_input_gives_no_groups(self):
        assert find_matches([]) == []

    def test_anchor_quirk_bitcoin_cash(self):
        """
        Bitcoin vs Bitcoin Cash = 64, Bitcoin vs BitCoin = 100.
        At threshold 85 Bitcoin Cash stays alone.
        """
        records = [make_record("Bitcoin"), make_record("Bitcoin Cash"), make_record("BitCoin")]

        groups = find_matches(records, threshold=85)

        assert group_names(groups) == [["Bitcoin", "BitCoin"], ["Bitcoin Cash"]]
        assert [g.key for g in groups] == ["Bitcoin", "Bitcoin Cash"]

    def test_clustering_is_not_transitive(self):
        """
        seed   aaaaaaaaaa
        member aaaaaaaabb  (80 vs seed)
        other  aaaaaabbbb  (60 vs seed, 80 vs member) -> own group
        """
        records = [
            make_record("aaaaaaaaaa"),
            make_record("aaaaaaaabb"),
            make_record("aaaaaabbbb"),
        ]
        assert similarity("aaaaaabbbb", "aaaaaaaabb") == 80

        groups = find_matches(records, threshold=80)

        assert group_names(groups) == [["aaaaaaaaaa", "aaaaaaaabb"], ["aaaaaabbbb"]]

    def test_threshold_100_groups_only_exact_normalized_matches(self):
        records = [
            make_record("Ethereum"),
            make_record("Ether"),
            make_record("ETHEREUM!"),
            make_record("Ethereum Classic"),
            make_record("ethereum"),
        ]

        groups = find_matches(records, threshold=100)

        assert group_names(groups) == [
            ["Ethereum", "ETHEREUM!", "ethereum"],
            ["Ether"],
            ["Ethereum Classic"],
        ]
        for group in groups:
            norms = {normalize_text(r.name) for r in group.records}
            assert len(norms) == 1

    def test_groups_form_a_partition(self):
        names = ["Bitcoin", "Ethereum", "BitCoin", "Bitcoin Cash", "Ether", "Solana", "Ethereum", "Sol"]
        records = [make_record(n, source=f"s{i}") for i, n in enumerate(names)]

        groups = find_matches(records)

        seen = [id(r) for g in groups for r in g.records]
        assert len(seen) == len(records)
        assert set(seen) == {id(r) for r in records}

    def test_key_is_unmodified_seed_name(self):
        records = [make_record("  Binance Coin (BNB) "), make_record("binance coin bnb")]

        groups = find_matches(records)

        assert len(groups) == 1
        assert groups[0].key == "  Binance Coin (BNB) "
        assert groups[0].seed is records[0]

    def test_members_keep_input_order(self):
        records = [make_record("Solana", source=s) for s in ("c", "a", "b")]

        groups = find_matches(records)

        assert [r.source for r in groups[0].records] == ["c", "a", "b"]

    def test_threshold_zero_puts_everything_in_one_group(self):
        records = [make_record(n) for n in ("abc", "xyz", "123")]
        groups = find_matches(records, threshold=0)
        assert len(groups) == 1
        assert len(groups[0]) == 3

    @pytest.mark.parametrize("threshold", [-1, 101])
    def test_invalid_threshold_raises(self, threshold):
        with pytest.raises(ValueError):
            find_matches([make_record("x")], threshold=threshold)


# ============================================
# Slugs
# ============================================

class TestSlugify:
    """Tests for slugify"""

    @pytest.mark.parametrize("name, expected", [
        ("Binance Coin (BNB)", "binance-coin-bnb"),
        ("Bitcoin", "bitcoin"),
        ("  --Hello,   World!!  ", "hello-world"),
        ("3-Bed Flat / London", "3-bed-flat-london"),
        ("!!!", ""),
    ])
    def test_slugify(self, name, expected):
        assert slugify(name) == expected
