"""
MedSight Request Parser

Turn an untyped request body into a validated AnalysisRequest.

The parser returns a tagged result instead of raising so that callers
(HTTP route, CLI, run_analysis) decide how a rejection is surfaced.
Nothing here touches the network: validation always runs before the
paper source or any judgment collaborator is called.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from medsight.core.enums import AnalysisMode, Sex
from medsight.core.exceptions import RequestValidationError
from medsight.core.schemas import AnalysisRequest, PatientProfile


@dataclass(frozen=True)
class ValidRequest:
    """Request accepted."""

    request: AnalysisRequest


@dataclass(frozen=True)
class InvalidRequest:
    """Request rejected, with a user-correctable reason."""

    reason: str
    field: str | None = None


ParseResult = ValidRequest | InvalidRequest

_SEXES = {s.value for s in Sex}


def _get(body: Mapping[str, Any], camel: str, snake: str) -> Any:
    if camel in body:
        return body[camel]
    return body.get(snake)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _string_list(value: Any, field: str) -> list[str] | InvalidRequest:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        return InvalidRequest(f"Patient {field} must be a list of strings", f"patient.{field}")
    return [item for item in value if isinstance(item, str)]


def _parse_patient(raw: Any, mode: AnalysisMode) -> PatientProfile | None | InvalidRequest:
    """Validate the patient block. Clinical mode requires age, sex and condition."""
    clinical = mode == AnalysisMode.CLINICAL

    if raw is None:
        if clinical:
            return InvalidRequest("Patient profile is required in clinical mode", "patient")
        return None
    if not isinstance(raw, Mapping):
        return InvalidRequest("Patient profile must be an object", "patient")

    age = raw.get("age")
    if age is None:
        if clinical:
            return InvalidRequest("Patient age is required in clinical mode", "patient.age")
    elif not _is_number(age) or not 0 <= age <= 120:
        return InvalidRequest("Patient age must be between 0 and 120", "patient.age")

    sex = raw.get("sex")
    if sex is None or sex == "":
        if clinical:
            return InvalidRequest("Patient sex is required in clinical mode", "patient.sex")
        sex = None
    elif not isinstance(sex, str) or sex not in _SEXES:
        return InvalidRequest(
            "Patient sex must be 'male', 'female', or 'other'", "patient.sex"
        )

    condition = _get(raw, "primaryCondition", "primary_condition")
    if condition is not None and not isinstance(condition, str):
        return InvalidRequest("Patient primary condition must be a string", "patient.primaryCondition")
    if clinical and (not condition or not condition.strip()):
        return InvalidRequest(
            "Patient primary condition is required in clinical mode", "patient.primaryCondition"
        )

    comorbidities = _string_list(raw.get("comorbidities"), "comorbidities")
    if isinstance(comorbidities, InvalidRequest):
        return comorbidities
    medications = _string_list(raw.get("medications"), "medications")
    if isinstance(medications, InvalidRequest):
        return medications

    return PatientProfile(
        age=int(age) if age is not None else None,
        sex=Sex(sex) if sex else None,
        primary_condition=condition,
        comorbidities=comorbidities,
        medications=medications,
    )


def parse_request(body: Mapping[str, Any], default_mode: str | None = None) -> ParseResult:
    """
    Validate a raw analysis request.

    Args:
        body: Decoded request body with query, mode and optional patient.
        default_mode: Mode used when the body carries none. If None, a
            missing mode is rejected like any other invalid value.

    Returns:
        ValidRequest or InvalidRequest.
    """
    if not isinstance(body, Mapping):
        return InvalidRequest("Request body must be an object")

    query = body.get("query")
    if not isinstance(query, str) or not query.strip():
        return InvalidRequest("Missing or invalid 'query' in request body.", "query")

    raw_mode = body.get("mode", default_mode)
    if isinstance(raw_mode, AnalysisMode):
        raw_mode = raw_mode.value
    if raw_mode not in (AnalysisMode.CLINICAL.value, AnalysisMode.RESEARCH.value):
        return InvalidRequest("Invalid mode. Must be 'clinical' or 'research'", "mode")
    mode = AnalysisMode(raw_mode)

    patient = _parse_patient(body.get("patient"), mode)
    if isinstance(patient, InvalidRequest):
        return patient

    return ValidRequest(AnalysisRequest(query=query.strip(), mode=mode, patient=patient))


def require_valid(body: Mapping[str, Any], default_mode: str | None = None) -> AnalysisRequest:
    """parse_request, raising RequestValidationError on rejection."""
    result = parse_request(body, default_mode)
    if isinstance(result, InvalidRequest):
        raise RequestValidationError(result.reason, result.field)
    return result.request
