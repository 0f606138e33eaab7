"""Grouped complaint counts for the authority dashboard."""
from __future__ import annotations

from typing import Dict, List

from sqlalchemy import func

from extensions import db
from models import Complaint


def _grouped_counts(column) -> Dict[str, int]:
    rows = db.session.query(column, func.count(Complaint.id)).group_by(column).all()
    return {value: count for value, count in rows}


def status_counts() -> Dict[str, int]:
    return _grouped_counts(Complaint.status)


def type_counts() -> Dict[str, int]:
    return _grouped_counts(Complaint.type)


def dashboard_summary() -> Dict[str, List[Dict]]:
    """Shape both aggregations the way the dashboard consumes them."""
    return {
        "stats": [{"status": status, "count": count} for status, count in sorted(status_counts().items())],
        "typeStats": [{"type": kind, "count": count} for kind, count in sorted(type_counts().items())],
    }
