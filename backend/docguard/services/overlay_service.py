"""
Region overlay geometry.

Maps fraud-flag regions (percentages of the page) onto pixel rectangles of
the rendered document image, at any zoom. Everything here is a pure
function of its inputs; selection state lives with the caller.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

MIN_ZOOM = 0.5
MAX_ZOOM = 3.0
ZOOM_STEP = 0.25

SELECTED_STROKE_WIDTH = 3
DEFAULT_STROKE_WIDTH = 2
LOW_CONFIDENCE_THRESHOLD = 50


@dataclass(frozen=True)
class PixelRect:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def corners(self) -> List[Tuple[float, float]]:
        right = self.x + self.width
        bottom = self.y + self.height
        return [(self.x, self.y), (right, self.y), (self.x, bottom), (right, bottom)]


@dataclass(frozen=True)
class SeverityStyle:
    tone: str
    border: str
    fill: str
    stroke: str


SEVERITY_STYLES = {
    "critical": SeverityStyle("destructive", "border-destructive", "bg-destructive/20", "stroke-destructive"),
    "high": SeverityStyle("destructive", "border-destructive", "bg-destructive/15", "stroke-destructive"),
    "medium": SeverityStyle("warning", "border-warning", "bg-warning/15", "stroke-warning"),
    "low": SeverityStyle("caution", "border-yellow-500", "bg-yellow-500/10", "stroke-yellow-500"),
}
FALLBACK_STYLE = SeverityStyle("muted", "border-muted-foreground", "bg-muted/20", "stroke-muted-foreground")


@dataclass
class OverlayBox:
    flag_id: str
    name: str
    severity: str
    confidence: Optional[int]
    rect: PixelRect
    style: SeverityStyle
    selected: bool
    stroke_width: int
    handles: List[Tuple[float, float]] = field(default_factory=list)
    clickable: bool = True


@dataclass
class OverlayLayout:
    width: float
    height: float
    zoom: float
    boxes: List[OverlayBox] = field(default_factory=list)
    unlocalized_flag_ids: List[str] = field(default_factory=list)
    selected_flag_id: Optional[str] = None
    focus_point: Optional[Tuple[float, float]] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ============================================================================
# Helpers
# ============================================================================

def _get(flag: Any, key: str, default=None):
    if isinstance(flag, dict):
        return flag.get(key, default)
    return getattr(flag, key, default)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_region_coords(value: Any) -> Optional[dict]:
    """
    Normalize stored region coordinates. Anything other than four numeric
    x/y/width/height values means "not localized".
    """
    if value is None:
        return None
    if not isinstance(value, dict):
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        else:
            return None
    keys = ("x", "y", "width", "height")
    if not all(_is_number(value.get(k)) for k in keys):
        return None
    return {k: float(value[k]) for k in keys}


# ============================================================================
# Geometry
# ============================================================================

def clamp_zoom(zoom: float) -> float:
    return _clamp(float(zoom), MIN_ZOOM, MAX_ZOOM)


def zoom_in(zoom: float) -> float:
    return clamp_zoom(zoom + ZOOM_STEP)


def zoom_out(zoom: float) -> float:
    return clamp_zoom(zoom - ZOOM_STEP)


def to_pixel_rect(coords: dict, natural_width: float, natural_height: float, zoom: float = 1.0) -> PixelRect:
    """
    Percent coordinates -> pixel rectangle.

    The box is first clamped inside the page (negative values become 0 and
    x + width, y + height never exceed 100), then scaled by the image's
    natural size and the zoom factor.
    """
    x = _clamp(coords["x"], 0.0, 100.0)
    y = _clamp(coords["y"], 0.0, 100.0)
    width = _clamp(coords["width"], 0.0, 100.0 - x)
    height = _clamp(coords["height"], 0.0, 100.0 - y)

    scale_x = natural_width * zoom / 100.0
    scale_y = natural_height * zoom / 100.0
    return PixelRect(x * scale_x, y * scale_y, width * scale_x, height * scale_y)


def severity_style(severity: Any) -> SeverityStyle:
    if isinstance(severity, str):
        return SEVERITY_STYLES.get(severity.lower(), FALLBACK_STYLE)
    # Enum members carry the value
    return SEVERITY_STYLES.get(getattr(severity, "value", None), FALLBACK_STYLE)


def _severity_name(severity: Any) -> str:
    return str(getattr(severity, "value", severity) or "")


def build_overlay(
    flags: Iterable[Any],
    natural_width: float,
    natural_height: float,
    zoom: float = 1.0,
    selected_flag_id: Optional[str] = None,
) -> OverlayLayout:
    """
    Lay out clickable boxes for every localized flag, in input order.
    Flags without a region are listed separately and can't be selected.
    """
    zoom = clamp_zoom(zoom)
    selected_flag_id = str(selected_flag_id) if selected_flag_id is not None else None
    layout = OverlayLayout(width=natural_width * zoom, height=natural_height * zoom, zoom=zoom)

    for flag in flags:
        flag_id = str(_get(flag, "id"))
        coords = parse_region_coords(_get(flag, "region_coords"))
        if coords is None:
            layout.unlocalized_flag_ids.append(flag_id)
            continue

        rect = to_pixel_rect(coords, natural_width, natural_height, zoom)
        selected = flag_id == selected_flag_id
        severity = _get(flag, "severity")
        layout.boxes.append(OverlayBox(
            flag_id=flag_id,
            name=_get(flag, "name") or "",
            severity=_severity_name(severity),
            confidence=_get(flag, "confidence"),
            rect=rect,
            style=severity_style(severity),
            selected=selected,
            stroke_width=SELECTED_STROKE_WIDTH if selected else DEFAULT_STROKE_WIDTH,
            handles=rect.corners() if selected else [],
        ))
        if selected:
            layout.selected_flag_id = flag_id
            layout.focus_point = rect.center

    return layout


def toggle_selection(current: Optional[str], flag_id: str) -> Optional[str]:
    """Clicking the selected flag clears the selection; any other selects it."""
    return None if current == flag_id else flag_id


def group_by_confidence(flags: Iterable[Any], threshold: int = LOW_CONFIDENCE_THRESHOLD):
    """Split flags into (detected, low_confidence)."""
    detected, low_confidence = [], []
    for flag in flags:
        confidence = _get(flag, "confidence")
        if confidence is not None and confidence >= threshold:
            detected.append(flag)
        else:
            low_confidence.append(flag)
    return detected, low_confidence


def risk_state(score: int) -> str:
    if score < 30:
        return "low"
    if score < 60:
        return "elevated"
    return "high"
