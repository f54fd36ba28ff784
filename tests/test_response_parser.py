"""
Tests for AI answer parsing and knowledge-base payload rendering
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from diagnosis_fixtures import AI_CONTENT, PLANTS, POWDERY_MILDEW
from plantdoc.services.diagnosis.response_parser import (
    UNKNOWN_PLANT,
    build_kb_payload,
    disease_name_of,
    parse_diagnosis,
)


class TestParseDiagnosis:

    def test_fenced_camel_case_answer(self):
        payload = parse_diagnosis(AI_CONTENT)
        assert payload.plant_info.common_name == "Rose"
        assert payload.disease_info.disease_name == "Downy Mildew"
        assert payload.disease_info.is_healthy is False
        assert payload.treatment.immediate_actions == ["Improve airflow"]
        assert payload.confidence_score == 80
        assert disease_name_of(payload) == "Downy Mildew"

    def test_snake_case_and_null_lists(self):
        payload = parse_diagnosis(
            '{"disease_info": {"disease_name": "Rust", "symptoms": null}, "product_keywords": null}'
        )
        assert payload.disease_info.disease_name == "Rust"
        assert payload.disease_info.symptoms == []
        assert payload.product_keywords == []

    def test_missing_common_name_filled(self):
        payload = parse_diagnosis('{"plantInfo": {"scientificName": "Rosa"}}')
        assert payload.plant_info.common_name == UNKNOWN_PLANT

    @pytest.mark.parametrize("content", [
        None,
        "",
        "   ",
        "no json here",
        "[1, 2, 3]",
        '{"diseaseInfo": {"symptoms": "not a list"}}',
    ])
    def test_unusable_content(self, content):
        assert parse_diagnosis(content) is None

    def test_disease_name_of_empty(self):
        assert disease_name_of(None) is None


class TestBuildKbPayload:

    def test_renders_disease_record(self):
        payload = build_kb_payload(POWDERY_MILDEW, PLANTS[0], ["white spots"], 0.6)
        assert payload.plant_info.common_name == "Rose"
        assert payload.disease_info.disease_name == "Powdery Mildew"
        assert payload.disease_info.symptoms == ["white spots"]
        assert payload.disease_info.causes == ["Erysiphales fungi"]
        assert payload.treatment.immediate_actions == ["Remove infected leaves"]
        assert payload.product_keywords == ["fungicide"]
        assert payload.confidence_score == 60

    def test_without_plant(self):
        payload = build_kb_payload(POWDERY_MILDEW)
        assert payload.plant_info is None
        assert payload.confidence_score is None
