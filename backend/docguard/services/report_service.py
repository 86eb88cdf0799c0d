# docguard/services/report_service.py

import re
from datetime import datetime
from typing import Any, Dict, Optional

from docguard.db.models import Document, ScanResult

DISCLAIMER = (
    "This report is generated for informational purposes only. "
    "It does not constitute official verification."
)


def _value(enum_or_str) -> Optional[str]:
    return getattr(enum_or_str, "value", enum_or_str)


def report_filename(filename: str, generated_at: datetime) -> str:
    safe_name = re.sub(r"[^a-z0-9]", "_", filename or "", flags=re.IGNORECASE)[:30]
    return f"fraud_report_{safe_name}_{int(generated_at.timestamp() * 1000)}.json"


def build_report(scan_result: ScanResult, document: Document, generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Exportable fraud analysis report for one verdict.
    """
    generated_at = generated_at or datetime.utcnow()
    return {
        "title": "Fraud Analysis Report",
        "generated_at": generated_at.isoformat(),
        "report_filename": report_filename(document.filename, generated_at),
        "document": {
            "id": str(document.id),
            "filename": document.filename,
            "document_type": scan_result.document_type or "Unknown",
            "review_status": _value(document.review_status),
        },
        "analyzed_at": scan_result.created_at.isoformat() if scan_result.created_at else None,
        "overall_risk_score": scan_result.overall_risk_score,
        "risk_level": _value(scan_result.risk_level),
        "analysis_summary": scan_result.analysis_summary,
        "is_degraded": scan_result.is_degraded,
        "fraud_flags": [
            {
                "name": flag.name,
                "flag_type": flag.flag_type,
                "severity": _value(flag.severity),
                "confidence": flag.confidence,
                "description": flag.description,
                "evidence_reference": flag.evidence_reference,
                "page_number": flag.page_number,
            }
            for flag in scan_result.fraud_flags
        ],
        "extracted_fields": [
            {
                "label": field.field_name.replace("_", " ").upper(),
                "field_name": field.field_name,
                "field_value": field.field_value,
                "confidence": field.confidence or 0,
            }
            for field in scan_result.extracted_fields
        ],
        "passed_checks": list(scan_result.passed_checks or []),
        "disclaimer": DISCLAIMER,
    }
