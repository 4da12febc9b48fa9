# Data Services Package
# Dataset loading and record access

from attrition_risk.services.data.record_store import RecordStore, LoadSummary

__all__ = [
    "RecordStore",
    "LoadSummary",
]
