"""HTTP-level tests for the API routers."""

import json
import logging
import uuid

import pytest

from conftest import make_token, seed_scan, verdict_text
from docguard.core.logger import CorrelationIdFilter, correlation_id_var
from docguard.db.models import Document, DocumentStatus
from docguard.utils.exceptions import OracleError

MB = 1024 * 1024


def upload(client, headers, filename="degree.pdf", data=b"%PDF-1.4 test", content_type="application/pdf"):
    return client.post(
        "/api/v1/documents/upload",
        files={"file": (filename, data, content_type)},
        headers=headers,
    )


def sse_events(body):
    """Parse a Server-Sent Events body into (event, data) pairs."""
    events = []
    name, data = None, []
    for line in body.splitlines():
        if line.startswith("event:"):
            name = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data.append(line[len("data:"):].strip())
        elif not line and data:
            events.append((name, json.loads("\n".join(data))))
            name, data = None, []
    if data:
        events.append((name, json.loads("\n".join(data))))
    return events


def pending_document(db, storage, user_id, status=DocumentStatus.pending):
    path = f"{user_id}/{uuid.uuid4()}_waiting.pdf"
    storage.blobs[path] = b"%PDF-1.4 waiting"
    document = Document(
        user_id=user_id,
        filename="waiting.pdf",
        file_path=path,
        file_type="application/pdf",
        file_size=16,
        status=status,
    )
    db.add(document)
    db.commit()
    return document


class TestAuth:

    def test_missing_token(self, test_client):
        response = test_client.get("/api/v1/documents")
        assert response.status_code == 401

    def test_invalid_token(self, test_client):
        response = test_client.get("/api/v1/documents", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_token_without_subject(self, test_client):
        token = make_token("not-a-uuid")
        response = test_client.get("/api/v1/documents", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestUpload:

    def test_upload_and_analyze(self, test_client, auth_headers, storage, oracle):
        response = upload(test_client, auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["scanResultId"]
        assert body["analysis"]["overall_risk_score"] == 72
        assert body["analysis"]["risk_level"] == "high"
        assert body["analysis"]["fraud_flags_count"] == 2
        assert [call[0] for call in storage.calls] == ["upload", "download"]
        assert len(oracle.calls) == 1

    def test_oversized_file_is_rejected_before_storage(self, test_client, auth_headers, storage, oracle):
        response = upload(test_client, auth_headers, data=b"0" * (12 * MB))

        assert response.status_code == 400
        assert response.json()["error"] == "File too large. Maximum size is 10MB."
        assert storage.calls == []
        assert oracle.calls == []

    def test_wrong_type_is_rejected(self, test_client, auth_headers, storage):
        response = upload(test_client, auth_headers, filename="notes.txt", data=b"hi", content_type="text/plain")

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"
        assert storage.calls == []

    def test_analysis_failure_keeps_document_id(self, test_client, auth_headers, oracle):
        oracle.push(OracleError("rate_limited", "Rate limit exceeded. Please try again in a few minutes.", 429))

        response = upload(test_client, auth_headers)

        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "rate_limited"
        assert body["retryable"] is True

        document = test_client.get(f"/api/v1/documents/{body['documentId']}", headers=auth_headers).json()["data"]
        assert document["document"]["status"] == "failed"
        assert document["document"]["error_message"] == body["error"]
        assert document["scan_result"] is None

    def test_retry_after_failure(self, test_client, auth_headers, oracle):
        oracle.push(OracleError("transport_error", "AI analysis failed. Please try again.", 500))
        document_id = upload(test_client, auth_headers).json()["documentId"]

        response = test_client.post(f"/api/v1/documents/{document_id}/retry", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["success"] is True

        again = test_client.post(f"/api/v1/documents/{document_id}/retry", headers=auth_headers)
        assert again.status_code == 409


class TestAnalysisEndpoint:

    def test_analyze_pending_document(self, test_client, auth_headers, db, storage, user_id):
        document = pending_document(db, storage, user_id)

        response = test_client.post(
            "/api/v1/analysis",
            json={"documentId": str(document.id), "fileUrl": "ignored", "fileType": "image/png"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["documentId"] == str(document.id)

    def test_rate_limited(self, test_client, auth_headers, db, storage, oracle, user_id):
        document = pending_document(db, storage, user_id)
        oracle.push(OracleError("rate_limited", "Rate limit exceeded. Please try again in a few minutes.", 429))

        response = test_client.post("/api/v1/analysis", json={"documentId": str(document.id)}, headers=auth_headers)

        assert response.status_code == 429
        assert response.json()["error"] == "Rate limit exceeded. Please try again in a few minutes."

    def test_quota_exhausted(self, test_client, auth_headers, db, storage, oracle, user_id):
        document = pending_document(db, storage, user_id)
        oracle.push(OracleError("quota_exhausted", "AI credits exhausted. Please add credits to continue.", 402))

        response = test_client.post("/api/v1/analysis", json={"documentId": str(document.id)}, headers=auth_headers)

        assert response.status_code == 402

    def test_already_processing(self, test_client, auth_headers, db, storage, oracle, user_id):
        document = pending_document(db, storage, user_id, status=DocumentStatus.processing)

        response = test_client.post("/api/v1/analysis", json={"documentId": str(document.id)}, headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "analysis_in_progress"
        assert oracle.calls == []

    def test_foreign_document_is_not_found(self, test_client, auth_headers, db, storage):
        document = pending_document(db, storage, uuid.uuid4())

        response = test_client.post("/api/v1/analysis", json={"documentId": str(document.id)}, headers=auth_headers)

        assert response.status_code == 404

    def test_invalid_document_id(self, test_client, auth_headers):
        response = test_client.post("/api/v1/analysis", json={"documentId": "nope"}, headers=auth_headers)
        assert response.status_code == 422


class TestDocuments:

    def test_list_and_search(self, test_client, auth_headers, oracle):
        upload(test_client, auth_headers, filename="degree.pdf")
        oracle.push(verdict_text(score=10, risk_level="low", flags=[]))
        upload(test_client, auth_headers, filename="invoice.png", content_type="image/png")

        listed = test_client.get("/api/v1/documents", headers=auth_headers).json()
        assert listed["total"] == 2

        by_name = test_client.get("/api/v1/documents", params={"search": "INVOICE"}, headers=auth_headers).json()
        assert [d["filename"] for d in by_name["data"]] == ["invoice.png"]

        by_type = test_client.get("/api/v1/documents", params={"search": "passport"}, headers=auth_headers).json()
        assert by_type["total"] == 0

        by_type = test_client.get("/api/v1/documents", params={"search": "certificate"}, headers=auth_headers).json()
        assert by_type["total"] == 2

    def test_status_filter(self, test_client, auth_headers, oracle):
        oracle.push(OracleError("transport_error", "AI analysis failed. Please try again.", 500))
        upload(test_client, auth_headers, filename="broken.pdf")
        upload(test_client, auth_headers, filename="fine.pdf")

        failed = test_client.get("/api/v1/documents", params={"status": "failed"}, headers=auth_headers).json()
        assert [d["filename"] for d in failed["data"]] == ["broken.pdf"]

    def test_detail_includes_latest_verdict(self, test_client, auth_headers):
        document_id = upload(test_client, auth_headers).json()["documentId"]

        data = test_client.get(f"/api/v1/documents/{document_id}", headers=auth_headers).json()["data"]

        assert data["document"]["status"] == "completed"
        assert data["document"]["review_status"] == "pending"
        scan = data["scan_result"]
        assert scan["risk_level"] == "high"
        assert len(scan["fraud_flags"]) == 2
        # Empty extracted values are dropped, names are snake_cased
        assert [f["field_name"] for f in scan["extracted_fields"]] == ["full_name"]

    def test_other_users_document_is_hidden(self, test_client, auth_headers, db, storage):
        document = pending_document(db, storage, uuid.uuid4())
        response = test_client.get(f"/api/v1/documents/{document.id}", headers=auth_headers)
        assert response.status_code == 404

    def test_view_url(self, test_client, auth_headers):
        document_id = upload(test_client, auth_headers).json()["documentId"]

        body = test_client.get(f"/api/v1/documents/{document_id}/view-url", headers=auth_headers).json()

        assert body["url"].startswith("https://storage.test/")
        assert body["expires_in"] == 3600

    def test_delete(self, test_client, auth_headers, storage):
        document_id = upload(test_client, auth_headers).json()["documentId"]

        response = test_client.delete(f"/api/v1/documents/{document_id}", headers=auth_headers)

        assert response.status_code == 200
        assert storage.blobs == {}
        assert test_client.get(f"/api/v1/documents/{document_id}", headers=auth_headers).status_code == 404

    def test_risk_filter_and_sort(self, test_client, auth_headers, oracle):
        upload(test_client, auth_headers, filename="degree.pdf")
        oracle.push(verdict_text(score=10, risk_level="low", flags=[]))
        upload(test_client, auth_headers, filename="invoice.png", content_type="image/png")
        oracle.push(verdict_text(score=45, risk_level="medium", flags=[]))
        upload(test_client, auth_headers, filename="contract.pdf")

        listed = test_client.get(
            "/api/v1/documents",
            params=[("risk_level", "high"), ("risk_level", "medium"), ("sort_by", "risk"), ("sort_order", "asc")],
            headers=auth_headers,
        ).json()
        assert [d["filename"] for d in listed["data"]] == ["contract.pdf", "degree.pdf"]

        by_name = test_client.get(
            "/api/v1/documents", params={"sort_by": "name", "sort_order": "asc", "date_range": "week"},
            headers=auth_headers,
        ).json()
        assert [d["filename"] for d in by_name["data"]] == ["contract.pdf", "degree.pdf", "invoice.png"]

    @pytest.mark.parametrize("params", [
        {"sort_by": "size"},
        {"sort_order": "sideways"},
        {"date_range": "decade"},
        {"risk_level": "extreme"},
    ])
    def test_invalid_list_options(self, test_client, auth_headers, params):
        response = test_client.get("/api/v1/documents", params=params, headers=auth_headers)
        assert response.status_code == 422


class TestScans:

    def _scan_id(self, client, headers):
        return upload(client, headers).json()["scanResultId"]

    def test_scan_detail(self, test_client, auth_headers):
        scan_id = self._scan_id(test_client, auth_headers)

        body = test_client.get(f"/api/v1/scans/{scan_id}", headers=auth_headers).json()

        assert body["risk_state"] == "high"
        assert body["filename"] == "degree.pdf"
        assert len(body["detected_flag_ids"]) == 1
        assert len(body["low_confidence_flag_ids"]) == 1

    def test_overlay(self, test_client, auth_headers):
        scan_id = self._scan_id(test_client, auth_headers)
        detail = test_client.get(f"/api/v1/scans/{scan_id}", headers=auth_headers).json()
        localized = detail["detected_flag_ids"][0]

        layout = test_client.get(
            f"/api/v1/scans/{scan_id}/overlay",
            params={"width": 1000, "height": 2000, "zoom": 2, "selected": localized},
            headers=auth_headers,
        ).json()

        assert len(layout["boxes"]) == 1
        box = layout["boxes"][0]
        assert box["rect"] == {"x": 200.0, "y": 800.0, "width": 600.0, "height": 200.0}
        assert box["selected"] is True
        assert layout["unlocalized_flag_ids"] == detail["low_confidence_flag_ids"]

    def test_overlay_requires_dimensions(self, test_client, auth_headers):
        scan_id = self._scan_id(test_client, auth_headers)
        response = test_client.get(f"/api/v1/scans/{scan_id}/overlay", headers=auth_headers)
        assert response.status_code == 422

    def test_report(self, test_client, auth_headers):
        scan_id = self._scan_id(test_client, auth_headers)

        report = test_client.get(f"/api/v1/scans/{scan_id}/report", headers=auth_headers).json()

        assert report["overall_risk_score"] == 72
        assert report["report_filename"].startswith("fraud_report_degree_pdf_")

    def test_unknown_scan(self, test_client, auth_headers):
        response = test_client.get(f"/api/v1/scans/{uuid.uuid4()}", headers=auth_headers)
        assert response.status_code == 404

    def test_compare(self, test_client, auth_headers, oracle):
        left_id = self._scan_id(test_client, auth_headers)
        oracle.push(verdict_text(score=30, risk_level="medium", flags=[], fields=[
            {"field_name": "Full Name", "field_value": "Jane Doe", "confidence": 95},
            {"field_name": "Serial Number", "field_value": "A-17", "confidence": 80},
        ]))
        right_id = self._scan_id(test_client, auth_headers)

        response = test_client.get(
            "/api/v1/scans/compare", params={"left": left_id, "right": right_id}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["left"]["scan_result_id"] == left_id
        assert data["right"]["risk_level"] == "medium"
        assert data["risk_score_delta"] == -42
        assert [(f["field"], f["match"]) for f in data["fields"]] == [
            ("full_name", True),
            ("serial_number", False),
        ]

    def test_compare_with_foreign_scan_is_not_found(self, test_client, auth_headers, db):
        own_id = self._scan_id(test_client, auth_headers)
        _, foreign = seed_scan(db, uuid.uuid4())

        response = test_client.get(
            "/api/v1/scans/compare", params={"left": own_id, "right": str(foreign.id)}, headers=auth_headers
        )

        assert response.status_code == 404

    def test_compare_requires_both_ids(self, test_client, auth_headers):
        response = test_client.get("/api/v1/scans/compare", params={"left": str(uuid.uuid4())}, headers=auth_headers)
        assert response.status_code == 422


class TestReview:

    def test_queue_and_decision(self, test_client, auth_headers):
        document_id = upload(test_client, auth_headers).json()["documentId"]

        queue = test_client.get("/api/v1/review/queue", headers=auth_headers).json()
        assert [item["document_id"] for item in queue["data"]] == [document_id]

        response = test_client.post(
            f"/api/v1/review/{document_id}",
            json={"decision": "verified", "notes": "Confirmed with issuer"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["review_status"] == "verified"

        assert test_client.get("/api/v1/review/queue", headers=auth_headers).json()["total"] == 0

        again = test_client.post(f"/api/v1/review/{document_id}", json={"decision": "rejected"}, headers=auth_headers)
        assert again.status_code == 409

    def test_low_risk_never_enters_queue(self, test_client, auth_headers, oracle):
        oracle.push(verdict_text(score=59, risk_level="medium", flags=[]))
        upload(test_client, auth_headers)

        assert test_client.get("/api/v1/review/queue", headers=auth_headers).json()["data"] == []

    def test_unknown_decision(self, test_client, auth_headers, db, user_id):
        document, _ = seed_scan(db, user_id, score=80)
        response = test_client.post(f"/api/v1/review/{document.id}", json={"decision": "approved"}, headers=auth_headers)
        assert response.status_code == 422


class TestNotifications:

    def test_completion_notifications(self, test_client, auth_headers, oracle):
        upload(test_client, auth_headers, filename="risky.pdf")
        oracle.push(verdict_text(score=15, risk_level="low", flags=[]))
        upload(test_client, auth_headers, filename="clean.pdf")

        body = test_client.get("/api/v1/notifications", headers=auth_headers).json()

        assert body["unread_count"] == 2
        assert sorted(n["type"] for n in body["data"]) == ["analysis_complete", "high_risk"]
        assert all(n["entity"]["kind"] == "scan_result" for n in body["data"])

    def test_failure_sends_no_notification(self, test_client, auth_headers, oracle):
        oracle.push(OracleError("transport_error", "AI analysis failed. Please try again.", 500))
        upload(test_client, auth_headers)

        assert test_client.get("/api/v1/notifications", headers=auth_headers).json()["data"] == []

    def test_read_and_delete(self, test_client, auth_headers):
        upload(test_client, auth_headers)
        upload(test_client, auth_headers, filename="second.pdf")
        items = test_client.get("/api/v1/notifications", headers=auth_headers).json()["data"]

        assert test_client.post(f"/api/v1/notifications/{items[0]['id']}/read", headers=auth_headers).status_code == 200
        assert test_client.get("/api/v1/notifications", headers=auth_headers).json()["unread_count"] == 1

        assert test_client.post("/api/v1/notifications/read-all", headers=auth_headers).json() == {"updated": 1}

        assert test_client.delete(f"/api/v1/notifications/{items[1]['id']}", headers=auth_headers).status_code == 200
        assert test_client.delete(f"/api/v1/notifications/{items[1]['id']}", headers=auth_headers).status_code == 404


class TestDashboard:

    def test_stats(self, test_client, auth_headers, db, user_id):
        seed_scan(db, user_id, score=20, risk_level="low")
        seed_scan(db, user_id, score=80, risk_level="critical")

        stats = test_client.get("/api/v1/dashboard/stats", headers=auth_headers).json()

        assert stats == {"total_scans": 2, "avg_risk_score": 50, "high_risk_count": 1, "recent_scans": 2}

    def test_trends(self, test_client, auth_headers, db, user_id):
        seed_scan(db, user_id, score=20, risk_level="low")

        trends = test_client.get("/api/v1/dashboard/trends", headers=auth_headers).json()

        assert trends["total_scans"] == 1
        assert trends["risk_trend"] == "stable"


class TestBatchEndpoint:

    def test_batch_report(self, test_client, auth_headers, oracle):
        oracle.push(verdict_text(score=20, risk_level="low", flags=[]))
        oracle.push(verdict_text(score=20, risk_level="low", flags=[]))

        response = test_client.post(
            "/api/v1/batch",
            files=[
                ("files", ("a.pdf", b"%PDF-1.4 a", "application/pdf")),
                ("files", ("b.png", b"\x89PNG b", "image/png")),
                ("files", ("c.txt", b"text", "text/plain")),
            ],
            headers=auth_headers,
        )

        assert response.status_code == 200
        report = response.json()
        assert (report["total"], report["succeeded"], report["failed"]) == (3, 2, 1)
        assert report["errors"][0]["filename"] == "c.txt"

    def test_too_many_files(self, test_client, auth_headers, storage):
        files = [("files", (f"{i}.pdf", b"%PDF", "application/pdf")) for i in range(11)]

        response = test_client.post("/api/v1/batch", files=files, headers=auth_headers)

        assert response.status_code == 400
        assert storage.calls == []

    def test_stream_reports_progress_and_totals(self, test_client, auth_headers, oracle):
        oracle.push(verdict_text(score=20, risk_level="low", flags=[]))
        oracle.push(verdict_text(score=20, risk_level="low", flags=[]))

        response = test_client.post(
            "/api/v1/batch/stream",
            files=[
                ("files", ("a.pdf", b"%PDF-1.4 a", "application/pdf")),
                ("files", ("b.png", b"\x89PNG b", "image/png")),
                ("files", ("c.txt", b"text", "text/plain")),
            ],
            data={"client_ids": ["a", "b", "c"]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = sse_events(response.text)

        progress = [data for name, data in events if name == "progress"]
        statuses = {}
        for event in progress:
            statuses.setdefault(event["client_id"], []).append(event["status"])
        assert statuses["a"][0] == "pending" and statuses["a"][-1] == "completed"
        assert statuses["b"][0] == "pending" and statuses["b"][-1] == "completed"
        assert statuses["c"] == ["pending", "failed"]
        assert events[-1] == ("complete", {"total": 3, "succeeded": 2, "failed": 1})


class TestHealth:

    @pytest.mark.parametrize("path", ["/health", "/api/v1/health"])
    def test_liveness(self, test_client, path):
        response = test_client.get(path)
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_correlation_id_is_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_correlation_id_is_generated(self, test_client):
        response = test_client.get("/health")
        assert uuid.UUID(response.headers["X-Correlation-ID"])

    def test_log_records_carry_correlation_id(self):
        record = logging.LogRecord("docguard", logging.INFO, __file__, 1, "msg", None, None)
        token = correlation_id_var.set("abc-123")
        try:
            CorrelationIdFilter().filter(record)
        finally:
            correlation_id_var.reset(token)

        assert record.correlation_id == "abc-123"
