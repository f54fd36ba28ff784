"""
Tests for text normalization, trigram similarity and JSON cleanup
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from plantdoc.utils.text_processing import (
    best_window_ratio,
    clean_json_response,
    contains_phrase,
    fuzzy_name_match,
    normalize_description,
    strip_diacritics,
    trigram_jaccard,
    truncate_excerpt,
)


# =============================================================================
# normalize_description
# =============================================================================
class TestNormalizeDescription:

    @pytest.mark.parametrize("raw,expected", [
        ("Yellow Spots on LEAVES", "yellow spots on leaves"),
        ("  yellow   spots,on...leaves!! ", "yellow spots on leaves"),
        ("Lá vàng, đốm nâu", "la vang dom nau"),
        ("ĐỐM TRẮNG", "dom trang"),
        ("leaf_curl\t\nbad", "leaf curl bad"),
        ("Café/crème", "cafe creme"),
    ])
    def test_canonical_key(self, raw, expected):
        assert normalize_description(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "   ", "?!..."])
    def test_empty_inputs_map_to_empty_key(self, raw):
        assert normalize_description(raw) == ""

    @pytest.mark.parametrize("raw", [
        "Lá vàng, đốm nâu",
        "Yellow Spots on LEAVES",
        "  mixed   CASE -- text ",
    ])
    def test_idempotent(self, raw):
        once = normalize_description(raw)
        assert normalize_description(once) == once

    def test_same_complaint_different_spacing(self):
        assert normalize_description("White spots;  leaf curl") == normalize_description("white SPOTS leaf-curl")

    def test_strip_diacritics_keeps_base_letters(self):
        assert strip_diacritics("Cây cà phê") == "Cay ca phe"


# =============================================================================
# Phrase matching
# =============================================================================
class TestPhraseMatching:

    def test_whole_word_only(self):
        assert contains_phrase("white spots on leaves", "white spots")
        assert not contains_phrase("whitespots on leaves", "white spots")
        assert not contains_phrase("", "white spots")

    def test_window_ratio_tolerates_typo(self):
        assert best_window_ratio("some yelow leaves today", "yellow leaves") > 0.9
        assert best_window_ratio("", "yellow leaves") == 0.0

    @pytest.mark.parametrize("candidate,query,expected", [
        ("Cây lúa", "lua", True),
        ("Cây lúa", "CÂY LÚA", True),
        ("Rose", "cay hoa hong", False),
        (None, "rose", False),
        ("Cây dừa", "cây", False),
        ("Cây dừa", "Cay", False),
        ("Rosa", "ros", False),
        ("Cây hoa hồng", "hoa hong", True),
        ("Cây hoa hồng", "hồng", True),
    ])
    def test_fuzzy_name_match(self, candidate, query, expected):
        assert fuzzy_name_match(candidate, query) is expected


# =============================================================================
# Trigram similarity
# =============================================================================
class TestTrigramJaccard:

    def test_identical_strings_score_one(self):
        assert trigram_jaccard("yellow spots on leaves", "yellow spots on leaves") == 1.0

    def test_disjoint_strings_score_zero(self):
        assert trigram_jaccard("abc", "xyz") == 0.0

    def test_empty_scores_zero(self):
        assert trigram_jaccard("", "leaf") == 0.0

    def test_symmetric_and_bounded(self):
        a, b = "yellow spot leaf", "yellow spots on leaves"
        score = trigram_jaccard(a, b)
        assert score == trigram_jaccard(b, a)
        assert 0.0 < score < 1.0


# =============================================================================
# JSON cleanup / excerpts
# =============================================================================
class TestCleanJsonResponse:

    @pytest.mark.parametrize("raw", [
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        'Here you go: {"a": 1} hope it helps',
        '{"a": 1,}',
    ])
    def test_extracts_object(self, raw):
        assert clean_json_response(raw) == '{"a": 1}'

    def test_none_is_empty(self):
        assert clean_json_response(None) == ""


class TestTruncateExcerpt:

    def test_short_text_unchanged(self):
        assert truncate_excerpt("abc") == "abc"

    def test_long_text_truncated_to_500(self):
        excerpt = truncate_excerpt("x" * 800)
        assert excerpt == "x" * 500 + "..."

    def test_none(self):
        assert truncate_excerpt(None) is None
