"""
Verdict parser.

Turns the oracle's raw answer into a closed `Verdict` structure. The
answer is untrusted: every key may be missing or of the wrong type, so
each field is decoded with an explicit default. `parse_verdict` never
raises; unparseable text degrades to a fallback verdict that keeps the
raw text as OCR output for a human to inspect.
"""
from __future__ import annotations

import json
import math
import re
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from docguard.core.logger import logger

DEFAULT_SCORE = 50
DEFAULT_RISK_LEVEL = "medium"
DEFAULT_DOCUMENT_TYPE = "Unknown Document"
DEFAULT_FLAG_TYPE = "visual_forensics"
DEFAULT_FLAG_NAME = "Unknown Issue"
DEFAULT_SEVERITY = "low"
DEFAULT_FLAG_CONFIDENCE = 50
DEFAULT_FIELD_CONFIDENCE = 80
FALLBACK_PASSED_CHECK = "Analysis completed with limited results"
FALLBACK_SUMMARY = (
    "The analysis response could not be fully interpreted. "
    "Results are shown with reduced confidence; manual review is recommended."
)

RISK_LEVELS = ("low", "medium", "high", "critical")
SEVERITIES = ("low", "medium", "high", "critical")

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


# ============================================================================
# Verdict models
# ============================================================================

class RegionCoords(BaseModel):
    """Bounding box in percent of the page (0-100)"""
    x: float
    y: float
    width: float
    height: float


class FraudFlagData(BaseModel):
    flag_type: str = DEFAULT_FLAG_TYPE
    name: str = DEFAULT_FLAG_NAME
    description: str = ""
    severity: str = DEFAULT_SEVERITY
    confidence: int = DEFAULT_FLAG_CONFIDENCE
    evidence_reference: Optional[str] = None
    page_number: Optional[int] = None
    region_coords: Optional[RegionCoords] = None


class ExtractedFieldData(BaseModel):
    field_name: str
    field_value: str
    confidence: int = DEFAULT_FIELD_CONFIDENCE


class Verdict(BaseModel):
    overall_risk_score: int = DEFAULT_SCORE
    risk_level: str = DEFAULT_RISK_LEVEL
    document_type: str = DEFAULT_DOCUMENT_TYPE
    ocr_text: Optional[str] = None
    analysis_summary: Optional[str] = None
    fraud_flags: List[FraudFlagData] = Field(default_factory=list)
    extracted_fields: List[ExtractedFieldData] = Field(default_factory=list)
    passed_checks: List[str] = Field(default_factory=list)
    is_degraded: bool = False


# ============================================================================
# Coercion helpers
# ============================================================================

def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _to_int(value: Any, default: int, low: int = 0, high: int = 100) -> int:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not _is_number(value):
        return default
    return max(low, min(high, int(round(value))))


def _to_text(value: Any, default: Optional[str]) -> Optional[str]:
    if value is None:
        return default
    if isinstance(value, str):
        return value if value.strip() else default
    if _is_number(value):
        return str(value)
    return default


def _choice(value: Any, allowed, default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return default


def to_snake_case(name: str) -> str:
    """'Issue Date' / 'issueDate' / 'issue-date' -> 'issue_date'"""
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name.strip())
    name = re.sub(r"[^A-Za-z0-9]+", "_", name)
    return name.strip("_").lower()


def _parse_region(value: Any) -> Optional[RegionCoords]:
    if not isinstance(value, dict):
        return None
    keys = ("x", "y", "width", "height")
    if not all(_is_number(value.get(k)) for k in keys):
        return None
    return RegionCoords(**{k: float(value[k]) for k in keys})


def _parse_flag(item: Any) -> Optional[FraudFlagData]:
    if not isinstance(item, dict):
        return None
    page = item.get("page_number")
    return FraudFlagData(
        flag_type=_to_text(item.get("flag_type"), DEFAULT_FLAG_TYPE),
        name=_to_text(item.get("name"), DEFAULT_FLAG_NAME),
        description=_to_text(item.get("description"), ""),
        severity=_choice(item.get("severity"), SEVERITIES, DEFAULT_SEVERITY),
        confidence=_to_int(item.get("confidence"), DEFAULT_FLAG_CONFIDENCE),
        evidence_reference=_to_text(item.get("evidence_reference"), None),
        page_number=int(page) if _is_number(page) and page >= 1 else None,
        region_coords=_parse_region(item.get("region_coords")),
    )


def _parse_field(item: Any) -> Optional[ExtractedFieldData]:
    if not isinstance(item, dict):
        return None
    value = _to_text(item.get("field_value"), None)
    name = _to_text(item.get("field_name"), None)
    if value is None or name is None:
        return None
    name = to_snake_case(name)
    if not name:
        return None
    return ExtractedFieldData(
        field_name=name,
        field_value=value,
        confidence=_to_int(item.get("confidence"), DEFAULT_FIELD_CONFIDENCE),
    )


def _list_of(value: Any) -> list:
    return value if isinstance(value, list) else []


# ============================================================================
# Public API
# ============================================================================

def extract_json_candidate(raw_text: str) -> str:
    """Contents of the first fenced block, or the whole text if there is none."""
    match = _FENCE_RE.search(raw_text or "")
    if match and match.group(1).strip():
        return match.group(1).strip()
    return (raw_text or "").strip()


def fallback_verdict(raw_text: str) -> Verdict:
    return Verdict(
        overall_risk_score=DEFAULT_SCORE,
        risk_level=DEFAULT_RISK_LEVEL,
        document_type=DEFAULT_DOCUMENT_TYPE,
        ocr_text=raw_text,
        analysis_summary=FALLBACK_SUMMARY,
        passed_checks=[FALLBACK_PASSED_CHECK],
        is_degraded=True,
    )


def parse_verdict(raw_text: str) -> Verdict:
    """
    Decode the oracle's answer into a Verdict.

    Never raises: text that is not a JSON object yields the fallback
    verdict with `is_degraded=True`.
    """
    candidate = extract_json_candidate(raw_text)
    try:
        data = json.loads(candidate)
    except (ValueError, TypeError):
        data = None

    if not isinstance(data, dict):
        logger.warning(f"Unparseable analysis response, using fallback: {(raw_text or '')[:200]!r}")
        return fallback_verdict(raw_text or "")

    flags = [f for f in (_parse_flag(i) for i in _list_of(data.get("fraud_flags"))) if f]
    fields = [f for f in (_parse_field(i) for i in _list_of(data.get("extracted_fields"))) if f]
    checks = [c for c in (_to_text(i, None) for i in _list_of(data.get("passed_checks"))) if c]

    return Verdict(
        overall_risk_score=_to_int(data.get("overall_risk_score"), DEFAULT_SCORE),
        risk_level=_choice(data.get("risk_level"), RISK_LEVELS, DEFAULT_RISK_LEVEL),
        document_type=_to_text(data.get("document_type"), DEFAULT_DOCUMENT_TYPE),
        ocr_text=_to_text(data.get("ocr_text"), None),
        analysis_summary=_to_text(data.get("analysis_summary"), None),
        fraud_flags=flags,
        extracted_fields=fields,
        passed_checks=checks,
        is_degraded=False,
    )
