# docguard/services/compare_service.py
"""
Side-by-side comparison of two verdicts.

Extracted fields are lined up by `field_name` in first-seen order (left
verdict first). Empty values count as missing, and a field only matches
when both sides carry the same value.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from docguard.db.models import Document, ScanResult
from docguard.services.report_service import _value


@dataclass
class FieldDifference:
    field: str
    label: str
    left: Optional[str]
    right: Optional[str]
    match: bool


def _field_values(scan_result: ScanResult) -> Dict[str, Optional[str]]:
    values: Dict[str, Optional[str]] = {}
    for extracted in scan_result.extracted_fields:
        # First occurrence wins, same as a lookup by name
        values.setdefault(extracted.field_name, extracted.field_value or None)
    return values


def field_differences(left: ScanResult, right: ScanResult) -> List[FieldDifference]:
    left_values = _field_values(left)
    right_values = _field_values(right)

    names = list(left_values)
    names += [name for name in right_values if name not in left_values]

    differences = []
    for name in names:
        left_value = left_values.get(name)
        right_value = right_values.get(name)
        differences.append(FieldDifference(
            field=name,
            label=name.replace("_", " "),
            left=left_value,
            right=right_value,
            match=left_value is not None and left_value == right_value,
        ))
    return differences


def _side(scan_result: ScanResult, document: Document) -> Dict[str, Any]:
    return {
        "scan_result_id": str(scan_result.id),
        "document_id": str(document.id),
        "filename": document.filename,
        "document_type": scan_result.document_type or "Unknown",
        "overall_risk_score": scan_result.overall_risk_score,
        "risk_level": _value(scan_result.risk_level),
        "created_at": scan_result.created_at.isoformat() if scan_result.created_at else None,
        "fraud_flags": [
            {"name": flag.name, "severity": _value(flag.severity), "description": flag.description}
            for flag in scan_result.fraud_flags
        ],
    }


def compare_scans(
    left_scan: ScanResult,
    left_document: Document,
    right_scan: ScanResult,
    right_document: Document,
) -> Dict[str, Any]:
    differences = field_differences(left_scan, right_scan)
    return {
        "left": _side(left_scan, left_document),
        "right": _side(right_scan, right_document),
        "risk_score_delta": right_scan.overall_risk_score - left_scan.overall_risk_score,
        "fields": [asdict(d) for d in differences],
        "matching_fields": sum(1 for d in differences if d.match),
    }
