# docguard/services/verdict_store.py

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docguard.core.logger import logger
from docguard.db.models import ExtractedField, FraudFlag, RiskLevel, ScanResult, Severity
from docguard.services.verdict_parser import Verdict
from docguard.utils.exceptions import PersistenceError


def save_verdict(db: Session, document_id: UUID, verdict: Verdict, commit: bool = True) -> ScanResult:
    """
    Persist a verdict as one ScanResult with its flags and fields.

    Everything is written in a single transaction: the ScanResult is
    flushed to obtain its id, children are added, and the unit commits
    once. With `commit=False` the caller owns the commit so it can add
    further changes to the same transaction.

    Raises:
        PersistenceError: the whole unit was rolled back
    """
    try:
        scan_result = ScanResult(
            document_id=document_id,
            overall_risk_score=verdict.overall_risk_score,
            risk_level=RiskLevel(verdict.risk_level),
            raw_ocr_text=verdict.ocr_text,
            document_type=verdict.document_type,
            analysis_summary=verdict.analysis_summary,
            passed_checks=list(verdict.passed_checks),
            is_degraded=verdict.is_degraded,
        )
        db.add(scan_result)
        db.flush()

        for flag in verdict.fraud_flags:
            db.add(FraudFlag(
                scan_result_id=scan_result.id,
                flag_type=flag.flag_type,
                name=flag.name,
                description=flag.description,
                severity=Severity(flag.severity),
                confidence=flag.confidence,
                evidence_reference=flag.evidence_reference,
                page_number=flag.page_number,
                region_coords=flag.region_coords.model_dump() if flag.region_coords else None,
            ))

        for field in verdict.extracted_fields:
            db.add(ExtractedField(
                scan_result_id=scan_result.id,
                field_name=field.field_name,
                field_value=field.field_value,
                confidence=field.confidence,
            ))

        db.flush()
        if commit:
            db.commit()

        logger.info(
            f"Verdict stored for document {document_id}: scan_result={scan_result.id} "
            f"flags={len(verdict.fraud_flags)} fields={len(verdict.extracted_fields)}"
        )
        return scan_result

    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        logger.error(f"Failed to store verdict for document {document_id}: {str(e)}")
        raise PersistenceError("Failed to store scan result") from e
