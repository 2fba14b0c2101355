"""
Tests for request validation.
"""

import pytest

from medsight.core.enums import AnalysisMode, Sex
from medsight.core.exceptions import RequestValidationError
from medsight.interface.request_parser import (
    InvalidRequest,
    ValidRequest,
    parse_request,
    require_valid,
)

CLINICAL_PATIENT = {"age": 70, "sex": "female", "primaryCondition": "atrial fibrillation"}


def _clinical(**patient_overrides):
    patient = {**CLINICAL_PATIENT, **patient_overrides}
    patient = {k: v for k, v in patient.items() if v is not ...}
    return {"query": "apixaban vs warfarin", "mode": "clinical", "patient": patient}


class TestValidRequests:
    def test_clinical(self):
        result = parse_request(
            _clinical(comorbidities=["CKD", ""], medications=["amiodarone"])
        )

        assert isinstance(result, ValidRequest)
        request = result.request
        assert request.mode == AnalysisMode.CLINICAL
        assert request.patient.sex == Sex.FEMALE
        assert request.patient.primary_condition == "atrial fibrillation"
        assert request.patient.comorbidities == ["CKD"]

    def test_research_without_patient(self):
        result = parse_request({"query": "statins", "mode": "research"})

        assert isinstance(result, ValidRequest)
        assert result.request.patient is None

    def test_research_with_partial_patient(self):
        result = parse_request({"query": "statins", "mode": "research", "patient": {"age": 70}})

        assert isinstance(result, ValidRequest)
        assert result.request.patient.age == 70
        assert result.request.patient.sex is None

    def test_snake_case_condition_accepted(self):
        body = _clinical(primaryCondition=...)
        body["patient"]["primary_condition"] = "gout"

        result = parse_request(body)

        assert result.request.patient.primary_condition == "gout"

    def test_query_is_stripped(self):
        result = parse_request({"query": "  statins  ", "mode": "research"})
        assert result.request.query == "statins"

    def test_default_mode(self):
        result = parse_request({"query": "statins"}, default_mode="research")
        assert result.request.mode == AnalysisMode.RESEARCH


class TestInvalidRequests:
    def test_missing_sex_in_clinical_mode(self):
        """Clinical mode without patient sex is rejected."""
        result = parse_request(_clinical(sex=...))

        assert isinstance(result, InvalidRequest)
        assert result.field == "patient.sex"

    @pytest.mark.parametrize(
        "body,field",
        [
            ({"mode": "research"}, "query"),
            ({"query": "   ", "mode": "research"}, "query"),
            ({"query": 42, "mode": "research"}, "query"),
            ({"query": "statins", "mode": "exploratory"}, "mode"),
            ({"query": "statins"}, "mode"),
            ({"query": "statins", "mode": "clinical"}, "patient"),
            ({"query": "statins", "mode": "clinical", "patient": "70F"}, "patient"),
        ],
    )
    def test_rejections(self, body, field):
        result = parse_request(body)

        assert isinstance(result, InvalidRequest)
        assert result.field == field

    @pytest.mark.parametrize("age", [-1, 121, "70", True, None])
    def test_bad_age_in_clinical_mode(self, age):
        result = parse_request(_clinical(age=age))

        assert isinstance(result, InvalidRequest)
        assert result.field == "patient.age"

    @pytest.mark.parametrize("sex", ["F", "unknown", 1])
    def test_bad_sex(self, sex):
        result = parse_request(_clinical(sex=sex))
        assert result.field == "patient.sex"

    @pytest.mark.parametrize("condition", ["", "   ", ...])
    def test_missing_condition_in_clinical_mode(self, condition):
        result = parse_request(_clinical(primaryCondition=condition))
        assert result.field == "patient.primaryCondition"

    def test_bad_age_rejected_in_research_mode_too(self):
        result = parse_request({"query": "statins", "mode": "research", "patient": {"age": 200}})
        assert isinstance(result, InvalidRequest)

    def test_non_mapping_body(self):
        assert isinstance(parse_request(["query"]), InvalidRequest)

    def test_require_valid_raises(self):
        with pytest.raises(RequestValidationError) as exc_info:
            require_valid(_clinical(sex=...))

        assert exc_info.value.field == "patient.sex"
        assert "sex" in exc_info.value.reason
