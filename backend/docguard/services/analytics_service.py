# docguard/services/analytics_service.py

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from docguard.db.models import Document, RiskLevel, ScanResult

TREND_MIN_SCANS = 4
TREND_DELTA = 5
TOP_DOCUMENT_TYPES = 6

HIGH_RISK_LEVELS = (RiskLevel.high, RiskLevel.critical)


def _level(scan: ScanResult) -> str:
    return getattr(scan.risk_level, "value", scan.risk_level)


def _average(values: Sequence[int]) -> int:
    return round(sum(values) / len(values)) if values else 0


def _user_scans(db: Session, user_id: UUID) -> List[ScanResult]:
    return db.query(ScanResult).join(
        Document, Document.id == ScanResult.document_id
    ).filter(
        Document.user_id == user_id
    ).order_by(ScanResult.created_at.asc()).all()


def risk_trend(scores: Sequence[int]) -> str:
    """
    Compare the average of the older half of scans with the newer half.
    Fewer than four scans is always "stable".
    """
    if len(scores) < TREND_MIN_SCANS:
        return "stable"
    midpoint = len(scores) // 2
    first = sum(scores[:midpoint]) / midpoint
    second = sum(scores[midpoint:]) / (len(scores) - midpoint)
    if second > first + TREND_DELTA:
        return "up"
    if second < first - TREND_DELTA:
        return "down"
    return "stable"


def quick_stats(db: Session, user_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
    scans = _user_scans(db, user_id)
    week_ago = (now or datetime.utcnow()) - timedelta(days=7)
    return {
        "total_scans": len(scans),
        "avg_risk_score": _average([s.overall_risk_score for s in scans]),
        "high_risk_count": sum(1 for s in scans if _level(s) in ("high", "critical")),
        "recent_scans": sum(1 for s in scans if s.created_at and s.created_at >= week_ago),
    }


def historical_trends(db: Session, user_id: UUID) -> Dict[str, Any]:
    """
    Per-day aggregates, risk distribution, per-document-type stats and the
    overall risk direction for a user's scans.
    """
    scans = _user_scans(db, user_id)
    scores = [s.overall_risk_score for s in scans]

    by_day: "OrderedDict[str, List[ScanResult]]" = OrderedDict()
    for scan in scans:
        by_day.setdefault(scan.created_at.date().isoformat(), []).append(scan)

    daily = [
        {
            "date": day,
            "avg_score": _average([g.overall_risk_score for g in group]),
            "scan_count": len(group),
            "high_risk": sum(1 for g in group if _level(g) in ("high", "critical")),
            "low_risk": sum(1 for g in group if _level(g) == "low"),
        }
        for day, group in by_day.items()
    ]

    distribution = {level.value: 0 for level in RiskLevel}
    for scan in scans:
        distribution[_level(scan)] = distribution.get(_level(scan), 0) + 1

    by_type: Dict[str, List[int]] = {}
    for scan in scans:
        by_type.setdefault(scan.document_type or "Unknown", []).append(scan.overall_risk_score)
    document_types = sorted(
        (
            {"type": doc_type, "count": len(values), "avg_risk": _average(values)}
            for doc_type, values in by_type.items()
        ),
        key=lambda item: item["count"],
        reverse=True,
    )[:TOP_DOCUMENT_TYPES]

    return {
        "total_scans": len(scans),
        "avg_risk_score": _average(scores),
        "risk_trend": risk_trend(scores),
        "daily": daily,
        "risk_distribution": distribution,
        "document_types": document_types,
    }
