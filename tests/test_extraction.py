"""Tests for payload decoding and the extraction contract."""

from __future__ import annotations

import json

from ertc_webhook.services.extraction import (
    CONTRACT_VERSION,
    extract_submission,
    form_data,
    lookup,
    parse_submission_payload,
)

from conftest import sample_payload


def test_submission_data_string_is_decoded():
    payload = sample_payload()
    parsed = parse_submission_payload({"submissionData": json.dumps(payload), "other": "x"})
    assert parsed == payload


def test_invalid_submission_data_falls_back_to_raw_fields():
    fields = {"submissionData": "{not json", "userId": "u-1"}
    assert parse_submission_payload(fields) == fields


def test_non_object_submission_data_falls_back():
    fields = {"submissionData": "[1, 2, 3]"}
    assert parse_submission_payload(fields) == fields


def test_missing_submission_data_uses_raw_body():
    body = {"formData": {"userEmail": "a@b.c"}}
    assert parse_submission_payload(body) == body


def test_already_decoded_submission_data_is_used():
    body = {"submissionData": {"formData": {}}}
    assert parse_submission_payload(body) == {"formData": {}}


def test_extract_reads_contract_paths():
    extracted = extract_submission(sample_payload())
    assert extracted.contract_version == CONTRACT_VERSION
    assert extracted.user_email == "owner@example.com"
    assert extracted.user_id == "user-123"
    assert extracted.baseline_revenue == {"q1": "10000", "q2": "5000", "q3": "8000"}
    assert extracted.comparison_revenue == {"q1": "4000", "q2": "5000", "q3": "0"}


def test_extract_falls_back_to_top_level_user_id():
    payload = {"userId": 77, "formData": {"userEmail": "  "}}
    extracted = extract_submission(payload)
    assert extracted.user_id == "77"
    assert extracted.user_email is None


def test_extract_tolerates_wrong_shapes():
    payload = {"formData": {"requestedInfo": "not a dict"}}
    extracted = extract_submission(payload)
    assert extracted.baseline_revenue == {}
    assert extracted.comparison_revenue == {}
    assert extracted.user_id is None


def test_extract_ignores_non_mapping_revenue():
    payload = {"formData": {"requestedInfo": {"gross_sales_2019": [1, 2, 3]}}}
    assert extract_submission(payload).baseline_revenue == {}


def test_lookup_stops_at_missing_hop():
    assert lookup({"a": {"b": 1}}, ("a", "b")) == 1
    assert lookup({"a": {"b": 1}}, ("a", "c")) is None
    assert lookup({"a": 5}, ("a", "b")) is None


def test_form_data_defaults_to_empty():
    assert form_data({}) == {}
    assert form_data({"formData": "x"}) == {}
    assert form_data(sample_payload())["userEmail"] == "owner@example.com"
