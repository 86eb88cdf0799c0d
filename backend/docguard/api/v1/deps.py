# docguard/api/v1/deps.py

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from docguard.core.config import settings
from docguard.db.database import SessionLocal, get_db  # noqa: F401  (re-exported for routers)
from docguard.services.audit_service import audit_service
from docguard.services.batch_service import BatchCoordinator
from docguard.services.pipeline_service import PipelineService

security = HTTPBearer(auto_error=False)

# ============================================================================
# JWT Dependency
# ============================================================================

def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UUID:
    """
    Validate the bearer token and return the caller's user id.

    Tokens are issued by the identity provider; only the signature, expiry
    and the "user_id" / "sub" claim are checked here.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user_id = payload.get("user_id") or payload.get("sub")
    try:
        return UUID(str(user_id))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )


# ============================================================================
# Service Dependencies
# ============================================================================

_pipeline_service = None


def get_pipeline_service() -> PipelineService:
    global _pipeline_service
    if _pipeline_service is None:
        _pipeline_service = PipelineService(SessionLocal, audit=audit_service)
    return _pipeline_service


def get_batch_coordinator(
    pipeline: PipelineService = Depends(get_pipeline_service),
) -> BatchCoordinator:
    return BatchCoordinator(pipeline)


def get_audit_service():
    return audit_service
