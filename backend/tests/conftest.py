"""Pytest configuration and shared fixtures."""

import os

# Must be set before docguard.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("AWS_REGION", "us-east-1")

import json
import uuid
from datetime import datetime

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from docguard.api.v1 import deps
from docguard.core.config import settings
from docguard.db.models import Document, DocumentStatus, ReviewStatus, RiskLevel, ScanResult
from docguard.db.database import Base, build_engine, get_db
from docguard.main import app
from docguard.services.audit_service import AuditService
from docguard.services.pipeline_service import PipelineService
from docguard.utils.exceptions import StorageError


class FakeStorage:
    """In-memory blob store that records every call."""

    def __init__(self):
        self.blobs = {}
        self.calls = []
        self.fail_download = False

    def upload(self, path, data, content_type="application/octet-stream"):
        self.calls.append(("upload", path))
        self.blobs[path] = data

    def download(self, path):
        self.calls.append(("download", path))
        if self.fail_download or path not in self.blobs:
            raise StorageError("Failed to download document")
        return self.blobs[path]

    def delete(self, path):
        self.calls.append(("delete", path))
        self.blobs.pop(path, None)

    def create_signed_url(self, path, ttl_seconds=3600):
        self.calls.append(("sign", path))
        return f"https://storage.test/{path}?expires={ttl_seconds}"


class FakeOracle:
    """Oracle double: returns queued responses or raises queued errors."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def push(self, response):
        self.responses.append(response)

    async def analyze(self, payload, mime_type):
        self.calls.append((len(payload), mime_type))
        response = self.responses.pop(0) if self.responses else verdict_text()
        if isinstance(response, Exception):
            raise response
        return response


def verdict_text(score=72, risk_level="high", flags=None, fields=None, fenced=True):
    """Build an oracle answer the way the model formats it."""
    if flags is None:
        flags = [
            {
                "flag_type": "typography_forensics",
                "name": "Font mismatch in issue date",
                "description": "Issue date uses a different typeface than surrounding text.",
                "severity": "high",
                "confidence": 82,
                "evidence_reference": "Issue date field",
                "page_number": 1,
                "region_coords": {"x": 10, "y": 20, "width": 30, "height": 5},
            },
            {
                "flag_type": "metadata_analysis",
                "name": "Editing software artifacts",
                "description": "Compression traces suggest re-saving.",
                "severity": "medium",
                "confidence": 40,
                "region_coords": None,
            },
        ]
    if fields is None:
        fields = [
            {"field_name": "Full Name", "field_value": "Jane Doe", "confidence": 95},
            {"field_name": "issue_date", "field_value": "", "confidence": 90},
        ]
    body = json.dumps({
        "overall_risk_score": score,
        "risk_level": risk_level,
        "document_type": "University Degree Certificate",
        "ocr_text": "BACHELOR OF SCIENCE awarded to Jane Doe",
        "fraud_flags": flags,
        "extracted_fields": fields,
        "passed_checks": ["Seal layering is consistent"],
        "analysis_summary": "Multiple indicators of manipulation were found.",
    })
    return f"Here is the analysis:\n```json\n{body}\n```" if fenced else body


@pytest.fixture
def engine(tmp_path):
    """SQLite database file per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'docguard.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def audit(session_factory):
    return AuditService(session_factory)


@pytest.fixture
def pipeline(session_factory, storage, oracle, audit):
    return PipelineService(session_factory, storage=storage, oracle=oracle, audit=audit)


@pytest.fixture
def pdf_bytes():
    """Minimal PDF payload."""
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<\n/Type /Catalog\n>>\nendobj\n"


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def test_client(session_factory, pipeline, audit):
    """FastAPI test client wired to the per-test database and fakes."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_pipeline_service] = lambda: pipeline
    app.dependency_overrides[deps.get_audit_service] = lambda: audit
    return TestClient(app)


def make_token(user_id, **claims):
    payload = {"sub": str(user_id), **claims}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def seed_scan(db, user_id, score=70, risk_level="high", review_status="pending",
              document=None, document_type="Passport", created_at=None, filename="scan.pdf"):
    """Insert a completed document (unless given) with one verdict."""
    if document is None:
        document = Document(
            user_id=user_id,
            filename=filename,
            file_path=f"{user_id}/{uuid.uuid4()}_{filename}",
            file_type="application/pdf",
            file_size=1024,
            status=DocumentStatus.completed,
            review_status=ReviewStatus(review_status) if review_status else None,
        )
        db.add(document)
        db.flush()

    scan = ScanResult(
        document_id=document.id,
        overall_risk_score=score,
        risk_level=RiskLevel(risk_level),
        document_type=document_type,
        analysis_summary="Seeded verdict",
        passed_checks=["Seal layering is consistent"],
        created_at=created_at or datetime.utcnow(),
    )
    db.add(scan)
    db.commit()
    return document, scan
