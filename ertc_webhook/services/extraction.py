"""Submission payload decoding and the field-path extraction contract."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ertc_webhook.schemas.submission import ExtractedSubmission

logger = logging.getLogger("ertc.extraction")

CONTRACT_VERSION = "v1"

# field -> candidate paths, first hit wins
FIELD_PATHS: dict[str, tuple[tuple[str, ...], ...]] = {
    "user_email": (("formData", "userEmail"),),
    "user_id": (("formData", "userId"), ("userId",)),
    "baseline_revenue": (("formData", "requestedInfo", "gross_sales_2019"),),
    "comparison_revenue": (("formData", "requestedInfo", "gross_sales_2021"),),
}


def parse_submission_payload(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Decode the ``submissionData`` JSON string, or fall back to the raw fields."""
    raw = fields.get("submissionData")
    if raw is None:
        logger.info("No submissionData field found, using raw body")
        return dict(fields)
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        preview = str(raw)[:200]
        logger.error("Error parsing submissionData: %s (raw: %s...)", exc, preview)
        return dict(fields)
    if not isinstance(parsed, dict):
        logger.error("submissionData is not a JSON object (got %s)", type(parsed).__name__)
        return dict(fields)
    return parsed


def lookup(payload: Any, path: tuple[str, ...]) -> Any:
    """Follow *path* through nested mappings; ``None`` when any hop is missing."""
    node = payload
    for key in path:
        if not isinstance(node, Mapping) or key not in node:
            return None
        node = node[key]
    return node


def _first(payload: Mapping[str, Any], field: str) -> Any:
    for path in FIELD_PATHS[field]:
        value = lookup(payload, path)
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, (Mapping, list)):
        return None
    text = str(value).strip()
    return text or None


def _as_mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def extract_submission(payload: Mapping[str, Any]) -> ExtractedSubmission:
    """Apply the extraction contract to a decoded payload."""
    return ExtractedSubmission(
        contract_version=CONTRACT_VERSION,
        user_email=_as_text(_first(payload, "user_email")),
        user_id=_as_text(_first(payload, "user_id")),
        baseline_revenue=_as_mapping(_first(payload, "baseline_revenue")),
        comparison_revenue=_as_mapping(_first(payload, "comparison_revenue")),
    )


def form_data(payload: Mapping[str, Any]) -> dict[str, Any]:
    """The ``formData`` block used by the report's summary sheet."""
    return _as_mapping(lookup(payload, ("formData",)))
