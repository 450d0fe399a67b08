"""Scan lifecycle: the in-memory registry and the state machine driving it."""

from .service import (
    ScanService,
    StoreProgressSink,
    compute_risk_score,
    stage_percentage,
)
from .store import ScanStore

__all__ = [
    "ScanService",
    "ScanStore",
    "StoreProgressSink",
    "compute_risk_score",
    "stage_percentage",
]
