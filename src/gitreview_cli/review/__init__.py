"""Review server access: origin discovery, credentials, and the REST client."""

from __future__ import annotations

from .client import (
    MAX_QUERY_CLAUSES,
    NO_MATCH_QUERY,
    ReviewClient,
    decode_response,
    full_change_id,
    normalize_query_response,
)
from .models import ReviewAccount, ReviewApproval, ReviewLabel, ReviewLookup, ReviewRecord, ReviewStatus
from .origin import Credentials, ReviewOrigin, discover_credentials, parse_review_origin

__all__ = [
    "MAX_QUERY_CLAUSES",
    "NO_MATCH_QUERY",
    "Credentials",
    "ReviewAccount",
    "ReviewApproval",
    "ReviewClient",
    "ReviewLabel",
    "ReviewLookup",
    "ReviewOrigin",
    "ReviewRecord",
    "ReviewStatus",
    "decode_response",
    "discover_credentials",
    "full_change_id",
    "normalize_query_response",
    "parse_review_origin",
]
