# dx_core/results/critical.py
"""
Critical value detection for lab measurements.

Known analytes use fixed critical limits; anything else is judged against
its normal range:
- "a-b"  -> critical below 0.8*a or above 1.2*b
- "< x"  -> critical at or above 1.5*x
- "> x"  -> critical at or below 0.5*x
Unparseable values or ranges are never critical.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

_NUMBER = re.compile(r"[\d.]+")
_LESS_THAN = re.compile(r"<\s*([\d.]+)")
_GREATER_THAN = re.compile(r">\s*([\d.]+)")
_RANGE = re.compile(r"(\d+\.?\d*)\s*[-–—]\s*(\d+\.?\d*)")

# analyte -> (low, high, unit)
CRITICAL_THRESHOLDS: Dict[str, Tuple[Optional[float], Optional[float], str]] = {
    # hematology
    "WBC": (2.0, 30.0, "x10^9/L"),
    "HEMOGLOBIN": (7.0, 20.0, "g/dL"),
    "PLATELETS": (50.0, 1000.0, "x10^9/L"),
    # biochemistry
    "GLUCOSE": (40.0, 400.0, "mg/dL"),
    "SODIUM": (120.0, 160.0, "mmol/L"),
    "POTASSIUM": (2.5, 6.5, "mmol/L"),
    "CREATININE": (None, 5.0, "mg/dL"),
    "CALCIUM": (6.0, 13.0, "mg/dL"),
    # blood gases
    "PH": (7.2, 7.6, ""),
    "PO2": (50.0, None, "mmHg"),
    "PCO2": (20.0, 70.0, "mmHg"),
    # cardiac
    "TROPONIN": (None, 0.5, "ng/mL"),
    "BNP": (None, 400.0, "pg/mL"),
}


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    m = _NUMBER.search(str(value or ""))
    if not m:
        return None
    try:
        return float(m.group(0))
    except ValueError:
        return None


def _reason(name: str, code: str, value: float, threshold: float, message: str) -> Dict[str, Any]:
    return {"name": name, "code": code, "value": value, "threshold": threshold, "message": message}


def check_known_threshold(name: str, value: Any) -> Optional[Dict[str, Any]]:
    limits = CRITICAL_THRESHOLDS.get((name or "").strip().upper())
    num = _to_number(value)
    if limits is None or num is None:
        return None

    low, high, unit = limits
    if low is not None and num < low:
        return _reason(name, "CRITICAL_LOW", num, low, f"{name}: {num:g} is critically low (threshold: {low:g}{unit})")
    if high is not None and num > high:
        return _reason(name, "CRITICAL_HIGH", num, high, f"{name}: {num:g} is critically high (threshold: {high:g}{unit})")
    return None


def check_normal_range(name: str, value: Any, normal_range: Optional[str]) -> Optional[Dict[str, Any]]:
    num = _to_number(value)
    if num is None or not normal_range:
        return None

    text = normal_range.strip().lower()

    m = _LESS_THAN.search(text)
    if m:
        limit = float(m.group(1))
        if num >= limit * 1.5:
            return _reason(name, "CRITICAL_HIGH", num, limit, f"{name}: {num:g} significantly exceeds upper limit of {limit:g}")
        return None

    m = _GREATER_THAN.search(text)
    if m:
        limit = float(m.group(1))
        if num <= limit * 0.5:
            return _reason(name, "CRITICAL_LOW", num, limit, f"{name}: {num:g} significantly below lower limit of {limit:g}")
        return None

    m = _RANGE.search(text)
    if m:
        low, high = float(m.group(1)), float(m.group(2))
        if num < low * 0.8:
            return _reason(name, "CRITICAL_LOW", num, low, f"{name}: {num:g} is critically low (normal: {low:g}-{high:g})")
        if num > high * 1.2:
            return _reason(name, "CRITICAL_HIGH", num, high, f"{name}: {num:g} is critically high (normal: {low:g}-{high:g})")

    return None


def critical_check(measurements: Iterable[Dict[str, Any]], default_range: Optional[str] = None) -> Tuple[bool, List[Dict[str, Any]]]:
    """
    Returns (is_critical, reasons). Known analytes take precedence over ranges.
    `default_range` (the order's normal range) applies to measurements without one.
    """
    reasons: List[Dict[str, Any]] = []
    for m in measurements or []:
        name = str(m.get("name") or "").strip()
        value = m.get("value")
        if (name or "").upper() in CRITICAL_THRESHOLDS:
            hit = check_known_threshold(name, value)
        else:
            hit = check_normal_range(name, value, m.get("normal_range") or default_range)
        if hit:
            reasons.append(hit)
    return (len(reasons) > 0), reasons


def summarize(reasons: List[Dict[str, Any]]) -> str:
    return "; ".join(r["message"] for r in reasons)
