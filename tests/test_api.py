"""End-to-end tests for the HTTP API (ASGI transport, in-memory database)."""

from __future__ import annotations

import json
from io import BytesIO
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from openpyxl import load_workbook

from ertc_webhook.api import handlers
from ertc_webhook.services.extraction import CONTRACT_VERSION
from ertc_webhook.services.report_service import ANALYSIS_SHEET, FIRST_QUARTER_ROW

from conftest import sample_payload


async def _post_multipart(client, payload, files=None):
    return await client.post(
        "/webhook",
        data={"submissionData": json.dumps(payload)},
        files=files or {"payroll": ("payroll.pdf", b"%PDF-1.4 test", "application/pdf")},
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_root_reports_status(client):
    response = await client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ERTC Form Webhook Receiver is running"
    assert body["forwardingConfigured"] is False


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "connected"


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_multipart_webhook_is_processed(client, payload):
    response = await _post_multipart(client, payload)
    assert response.status_code == 200

    body = response.json()
    assert body["ok"] is True
    assert body["endpoint"] == "receive_submission"
    data = body["data"]
    assert data["reportGenerated"] is True
    assert data["qualifyingQuarters"] == ["Quarter 1", "Quarter 3"]
    assert data["fileCount"] == 1
    assert data["forwarded"] is False
    assert data["forwardingDetails"]["message"] == "No forward webhook URL configured"


@pytest.mark.asyncio
async def test_json_webhook_is_processed(client):
    payload = sample_payload(baseline={"q2": 10000}, comparison={"q2": 5000})
    response = await client.post("/webhook", json=payload)
    assert response.status_code == 200
    assert response.json()["data"]["qualifyingQuarters"] == ["Quarter 2"]


@pytest.mark.asyncio
async def test_unparseable_submission_data_still_stored(client):
    response = await client.post("/webhook", data={"submissionData": "{broken", "note": "hi"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["qualifyingQuarters"] == []

    detail = (await client.get(f"/submissions/{data['submissionId']}")).json()["data"]
    assert detail["originalData"] == {"submissionData": "{broken", "note": "hi"}


@pytest.mark.asyncio
async def test_non_object_json_is_rejected(client):
    response = await client.post("/webhook", json=[1, 2, 3])
    assert response.status_code == 400
    assert response.json()["error"]["error_code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_oversized_file_is_rejected(client, payload):
    big = {"payroll": ("big.bin", b"x" * 2048, "application/octet-stream")}
    response = await _post_multipart(client, payload, files=big)
    assert response.status_code == 413
    assert response.json()["error"]["error_code"] == "PAYLOAD_TOO_LARGE"


@pytest.mark.asyncio
async def test_webhook_forwards_when_configured(app, client, settings, payload):
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    settings.forward_webhook_url = "https://forward.example/hook"
    app.state.forward_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    try:
        response = await _post_multipart(client, payload)
    finally:
        await app.state.forward_client.aclose()

    data = response.json()["data"]
    assert data["forwarded"] is True
    assert len(received) == 1
    assert b'name="excelReport"' in received[0].content

    detail = (await client.get(f"/submissions/{data['submissionId']}")).json()["data"]
    assert detail["forwarded"] is True


@pytest.mark.asyncio
async def test_oversized_upload_is_read_only_past_the_limit(client, settings, payload):
    big = {"payroll": ("big.bin", b"x" * (10 * settings.max_upload_bytes), "application/octet-stream")}
    spy = AsyncMock(wraps=handlers.handle_receive_submission)
    with patch("ertc_webhook.api.handlers.handle_receive_submission", spy):
        response = await _post_multipart(client, payload, files=big)

    assert response.status_code == 413
    received = spy.call_args.args[3]
    assert received[0].size == settings.max_upload_bytes + 1


@pytest.mark.asyncio
async def test_huge_integer_revenue_is_treated_as_zero(client):
    payload = sample_payload(baseline={"q1": 10**400}, comparison={"q1": 0})
    response = await client.post("/webhook", json=payload)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["qualifyingQuarters"] == []

    detail = await client.get(f"/submissions/{data['submissionId']}")
    assert detail.status_code == 200
    assert detail.json()["data"]["quarterAnalysis"][0]["baselineRevenue"] == 0.0


@pytest.mark.asyncio
async def test_overflowing_figures_are_stored_and_served(client):
    payload = sample_payload(baseline={"q1": 1e308}, comparison={"q1": -1e308})
    response = await client.post("/webhook", json=payload)
    assert response.status_code == 200
    submission_id = response.json()["data"]["submissionId"]

    detail = await client.get(f"/submissions/{submission_id}")
    assert detail.status_code == 200
    q1 = detail.json()["data"]["quarterAnalysis"][0]
    assert q1["change"] == 0.0
    assert q1["percentDecrease"] == 0.0
    assert q1["qualifies"] is False

# ---------------------------------------------------------------------------
# Read / download
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_submission_detail(client, payload):
    submission_id = (await _post_multipart(client, payload)).json()["data"]["submissionId"]

    response = await client.get(f"/submissions/{submission_id}")
    assert response.status_code == 200
    detail = response.json()["data"]
    assert detail["userEmail"] == "owner@example.com"
    assert detail["userId"] == "user-123"
    assert detail["contractVersion"] == CONTRACT_VERSION
    assert detail["qualifyingQuarters"] == ["Quarter 1", "Quarter 3"]
    assert [q["percentDecrease"] for q in detail["quarterAnalysis"]] == [60.0, 0.0, 100.0]
    assert {f["kind"] for f in detail["files"]} == {"upload", "report"}


@pytest.mark.asyncio
async def test_unknown_submission_is_404(client):
    response = await client.get("/submissions/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"]["error_code"] == "SUBMISSION_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_submissions(client, payload):
    for _ in range(3):
        await _post_multipart(client, payload)

    response = await client.get("/submissions", params={"limit": 2})
    body = response.json()
    assert body["ok"] is True
    assert body["meta"]["row_count"] == 2
    assert body["data"]["total"] == 3
    assert body["data"]["hasMore"] is True


@pytest.mark.asyncio
async def test_list_rejects_negative_offset(client):
    response = await client.get("/submissions", params={"offset": -1})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_report_download(client, payload):
    submission_id = (await _post_multipart(client, payload)).json()["data"]["submissionId"]

    response = await client.get(f"/submissions/{submission_id}/report")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert f"report_{submission_id}.xlsx" in response.headers["content-disposition"]

    ws = load_workbook(BytesIO(response.content))[ANALYSIS_SHEET]
    assert ws.cell(row=FIRST_QUARTER_ROW, column=6).value == "Yes"


@pytest.mark.asyncio
async def test_report_download_unknown_submission(client):
    response = await client.get("/submissions/nope/report")
    assert response.status_code == 404
    assert response.json()["error"]["error_code"] == "SUBMISSION_NOT_FOUND"


@pytest.mark.asyncio
async def test_attachment_download(client, payload):
    submission_id = (await _post_multipart(client, payload)).json()["data"]["submissionId"]
    detail = (await client.get(f"/submissions/{submission_id}")).json()["data"]
    upload = next(f for f in detail["files"] if f["kind"] == "upload")

    response = await client.get(upload["downloadUrl"])
    assert response.status_code == 200
    assert response.content == b"%PDF-1.4 test"
    assert 'filename="payroll.pdf"' in response.headers["content-disposition"]


@pytest.mark.asyncio
async def test_attachment_download_bad_id(client, payload):
    submission_id = (await _post_multipart(client, payload)).json()["data"]["submissionId"]
    response = await client.get(f"/submissions/{submission_id}/files/not-a-uuid")
    assert response.status_code == 400

    response = await client.get(
        f"/submissions/{submission_id}/files/00000000-0000-0000-0000-000000000000"
    )
    assert response.status_code == 404
    assert response.json()["error"]["error_code"] == "FILE_NOT_FOUND"
