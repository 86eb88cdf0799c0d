"""
Health and readiness checks: database, S3 and oracle configuration.
"""
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from docguard.core.config import settings
from docguard.core.logger import logger
from docguard.db.database import SessionLocal

router = APIRouter()


def _check_database() -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return "ok", "Database reachable"
    except SQLAlchemyError as e:
        return "error", f"Database: {str(e)}"
    finally:
        db.close()


def _check_s3() -> tuple[str, str]:
    from docguard.services.s3_service import s3_service

    try:
        s3_service.s3_client.head_bucket(Bucket=s3_service.bucket)
        return "ok", f"Bucket '{s3_service.bucket}' accessible"
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "")
        return "error", f"S3: {code} - {str(e)}"
    except BotoCoreError as e:
        return "error", f"S3: {str(e)}"


def _check_oracle() -> tuple[str, str]:
    if not settings.ORACLE_API_KEY:
        return "error", "Oracle API key not configured"
    return "ok", f"Model {settings.ORACLE_MODEL}"


@router.get("")
def health():
    """Liveness: the API process is up."""
    return {"status": "healthy", "version": settings.APP_VERSION}


@router.get("/ready")
def readiness():
    """Readiness: database, S3 and oracle configuration."""
    checks = {}
    for name, check in (("database", _check_database), ("s3", _check_s3), ("oracle", _check_oracle)):
        status, detail = check()
        checks[name] = {"status": status, "detail": detail}

    ready = all(c["status"] == "ok" for c in checks.values())
    if not ready:
        logger.warning(f"Readiness check failed: {checks}")
    return {"status": "ready" if ready else "degraded", "checks": checks}
