"""
MedSight Interface Layer

Request validation for every entry point.
"""

from medsight.interface.request_parser import (
    InvalidRequest,
    ParseResult,
    ValidRequest,
    parse_request,
    require_valid,
)

__all__ = [
    "InvalidRequest",
    "ParseResult",
    "ValidRequest",
    "parse_request",
    "require_valid",
]
