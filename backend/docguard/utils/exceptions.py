"""
Custom exception classes
"""


class DocGuardError(Exception):
    """
    Base class for domain errors. Carries the HTTP status and the
    human-readable reason shown to the user.
    """
    status_code: int = 500
    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, detail: str, *, code: str | None = None, status_code: int | None = None,
                 retryable: bool | None = None):
        super().__init__(detail)
        self.detail = detail
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        if retryable is not None:
            self.retryable = retryable

    def to_dict(self) -> dict:
        return {"error": self.detail, "code": self.code, "retryable": self.retryable}


class FileValidationError(DocGuardError):
    """Raised before any I/O when a file fails the upload rules"""
    status_code = 400
    code = "validation_error"


class DocumentNotFoundError(DocGuardError):
    """Document missing or not owned by the caller (never distinguished)"""
    status_code = 404
    code = "not_found"

    def __init__(self, document_id=None):
        super().__init__("Document not found or access denied")
        self.document_id = document_id


class ScanResultNotFoundError(DocGuardError):
    status_code = 404
    code = "not_found"

    def __init__(self, scan_result_id=None):
        super().__init__("Scan result not found")
        self.scan_result_id = scan_result_id


class InvalidStateError(DocGuardError):
    """Operation not allowed from the document's current state"""
    status_code = 409
    code = "invalid_state"


class AnalysisInProgressError(InvalidStateError):
    code = "analysis_in_progress"

    def __init__(self, document_id=None):
        super().__init__("Analysis already in progress for this document")
        self.document_id = document_id


class InvalidReviewTransitionError(InvalidStateError):
    """Review decisions are only accepted while review_status is pending"""
    code = "invalid_review_transition"


class StorageError(DocGuardError):
    """Blob store unreachable or the operation was refused"""
    status_code = 500
    code = "storage_error"
    retryable = True


class OracleError(DocGuardError):
    """
    Failure calling the analysis oracle. `kind` is one of
    rate_limited, quota_exhausted, transport_error, empty_response,
    not_configured.
    """
    retryable = True

    def __init__(self, kind: str, detail: str, status_code: int):
        super().__init__(detail, code=kind, status_code=status_code)
        self.kind = kind


class PersistenceError(DocGuardError):
    """Verdict rows could not be written"""
    status_code = 500
    code = "persistence_error"
    retryable = True

