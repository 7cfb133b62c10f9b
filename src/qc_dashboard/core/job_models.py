"""
Job Tracking Models

Data structures shared by the CSV ingestion, batch merge, anomaly detection
and export layers of the QC dashboard.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional, Any


class QCStatus(Enum):
    """Review outcome vocabulary for a job."""
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    OUTPUT_NOT_FOUND = "Output Not Found"
    DONE = "Done"
    PENDING = "Pending"
    NOT_STARTED = "Not Started"


class BatchType(Enum):
    """Kind of data introduced by an import batch."""
    FRESH = "Fresh"
    QCED = "QCed"


class AnomalyType(Enum):
    """Anomaly categories raised by the detector."""
    REJECTION_SPIKE = "rejection_spike"
    PROCESSING_DELAY = "processing_delay"
    PATTERN_ERROR = "pattern_error"
    QUALITY_DROP = "quality_drop"


class AnomalySeverity(Enum):
    """Anomaly severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    AnomalySeverity.CRITICAL: 4,
    AnomalySeverity.HIGH: 3,
    AnomalySeverity.MEDIUM: 2,
    AnomalySeverity.LOW: 1,
}


@dataclass
class Job:
    """One annotation unit under QC tracking."""
    jid: str
    ref_id: str = ""
    client_file_name: str = ""
    data_status: str = ""
    making_date: str = ""
    qc_name: str = ""
    qc_date: str = ""
    qc_status: str = ""
    reject_reason: str = ""
    rework_date: str = ""
    comment: str = ""

    # Batch and assignment tracking
    batch_id: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_date: Optional[str] = None
    assigned_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged_with(self, newer: "Job") -> "Job":
        """Return a copy where every field set on ``newer`` wins over this job.

        Empty strings count as set and overwrite; ``None`` (an optional field
        the newer record never carried) keeps the existing value.
        """
        values = self.to_dict()
        values.update({k: v for k, v in newer.to_dict().items() if v is not None})
        return Job(**values)


@dataclass
class BatchInfo:
    """A named import unit."""
    id: str
    name: str
    type: BatchType
    upload_date: str
    uploaded_by: str
    job_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data


@dataclass
class Anomaly:
    """A rule-triggered finding over the current job population."""
    id: str
    type: AnomalyType
    severity: AnomalySeverity
    title: str
    description: str
    affected_jobs: List[str]
    detected_at: str
    suggested_action: str
    batch_id: Optional[str] = None
    resolved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        data['severity'] = self.severity.value
        return data
