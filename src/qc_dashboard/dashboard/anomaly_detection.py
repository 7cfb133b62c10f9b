"""
Anomaly Detection Engine

Rule-based detection of undesirable patterns in the QC job population.
Anomalies are recomputed from the job collection on every call and are never
stored.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from ..core.job_models import Anomaly, AnomalySeverity, AnomalyType, Job, QCStatus

logger = logging.getLogger(__name__)

# Rule thresholds
REJECTION_SPIKE_THRESHOLD = 0.25
REJECTION_SPIKE_CRITICAL = 0.4
PATTERN_MIN_COUNT = 3
PATTERN_HIGH_COUNT = 5
QC_MIN_JOBS = 10
QC_REJECTION_THRESHOLD = 0.5
QC_REJECTION_CRITICAL = 0.7
ONF_THRESHOLD = 0.10
ONF_HIGH = 0.20

# Reject-reason substring -> bucket name
REASON_BUCKETS = [
    ('retrror', 'structural_error'),
    ('missing', 'missing_component'),
    ('wrong', 'incorrect_labeling'),
]

SEVERITY_DEDUCTIONS = {
    AnomalySeverity.CRITICAL: 15,
    AnomalySeverity.HIGH: 10,
    AnomalySeverity.MEDIUM: 5,
    AnomalySeverity.LOW: 2,
}


def normalize_reason(reason: str) -> str:
    """Map a reject reason onto its bucket; unmatched reasons are their own bucket."""
    lowered = reason.lower()
    for needle, bucket in REASON_BUCKETS:
        if needle in lowered:
            return bucket
    return reason


def reason_in_bucket(reason: str, bucket: str) -> bool:
    """Re-match a reason against a bucket after counting.

    Named buckets match on their originating substring; buckets holding a raw
    reason only match that exact reason.
    """
    if not reason:
        return False
    for needle, name in REASON_BUCKETS:
        if name == bucket:
            return needle in reason.lower()
    return reason == bucket


def scope_jobs(jobs: Sequence[Job], batch_id: Optional[str] = None) -> List[Job]:
    if batch_id:
        return [job for job in jobs if job.batch_id == batch_id]
    return list(jobs)


class AnomalyDetector:
    """Stateless detector applying the four QC anomaly rules."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or datetime.now

    def detect(self, jobs: Sequence[Job], batch_id: Optional[str] = None) -> List[Anomaly]:
        """Run every rule over the (optionally batch-scoped) jobs.

        Results are ordered by severity, most severe first; ties keep the
        order in which the rules produced them.
        """
        relevant = scope_jobs(jobs, batch_id)
        if not relevant:
            return []

        detected_at = self.clock().isoformat()
        anomalies: List[Anomaly] = []
        anomalies.extend(self._detect_rejection_spike(relevant, batch_id, detected_at))
        anomalies.extend(self._detect_pattern_errors(relevant, batch_id, detected_at))
        anomalies.extend(self._detect_quality_drops(relevant, batch_id, detected_at))
        anomalies.extend(self._detect_processing_delay(relevant, batch_id, detected_at))

        anomalies.sort(key=lambda a: a.severity.rank, reverse=True)
        logger.debug(f"Detected {len(anomalies)} anomalies over {len(relevant)} jobs")
        return anomalies

    def _detect_rejection_spike(self, jobs: List[Job], batch_id: Optional[str], detected_at: str) -> List[Anomaly]:
        rejected = [j for j in jobs if j.qc_status == QCStatus.REJECTED.value]
        rate = len(rejected) / len(jobs)
        if rate <= REJECTION_SPIKE_THRESHOLD:
            return []

        return [Anomaly(
            id='rejection_spike_1',
            type=AnomalyType.REJECTION_SPIKE,
            severity=AnomalySeverity.CRITICAL if rate > REJECTION_SPIKE_CRITICAL else AnomalySeverity.HIGH,
            title='High Rejection Rate Detected',
            description=f"{rate * 100:.1f}% of jobs rejected ({len(rejected)}/{len(jobs)})",
            affected_jobs=[j.jid for j in rejected],
            batch_id=batch_id,
            detected_at=detected_at,
            suggested_action='Review annotation guidelines and provide additional training',
        )]

    def _detect_pattern_errors(self, jobs: List[Job], batch_id: Optional[str], detected_at: str) -> List[Anomaly]:
        counts: Dict[str, int] = {}
        for job in jobs:
            if job.qc_status == QCStatus.REJECTED.value and job.reject_reason:
                bucket = normalize_reason(job.reject_reason)
                counts[bucket] = counts.get(bucket, 0) + 1

        anomalies = []
        for bucket, count in counts.items():
            if count < PATTERN_MIN_COUNT:
                continue

            affected = [
                j.jid for j in jobs
                if j.qc_status == QCStatus.REJECTED.value and reason_in_bucket(j.reject_reason, bucket)
            ]

            anomalies.append(Anomaly(
                id=f"pattern_{bucket}",
                type=AnomalyType.PATTERN_ERROR,
                severity=AnomalySeverity.HIGH if count > PATTERN_HIGH_COUNT else AnomalySeverity.MEDIUM,
                title='Recurring Error Pattern',
                description=f'Pattern "{bucket}" detected in {count} jobs',
                affected_jobs=affected,
                batch_id=batch_id,
                detected_at=detected_at,
                suggested_action=f"Focus training on {bucket.replace('_', ' ', 1)} issues",
            ))
        return anomalies

    def _detect_quality_drops(self, jobs: List[Job], batch_id: Optional[str], detected_at: str) -> List[Anomaly]:
        performance: Dict[str, Dict[str, int]] = {}
        for job in jobs:
            if not job.qc_name:
                continue
            stats = performance.setdefault(job.qc_name, {'total': 0, 'rejected': 0, 'accepted': 0})
            stats['total'] += 1
            if job.qc_status == QCStatus.REJECTED.value:
                stats['rejected'] += 1
            elif job.qc_status == QCStatus.ACCEPTED.value:
                stats['accepted'] += 1

        anomalies = []
        for qc_name, stats in performance.items():
            rate = stats['rejected'] / stats['total']
            if stats['total'] < QC_MIN_JOBS or rate <= QC_REJECTION_THRESHOLD:
                continue

            anomalies.append(Anomaly(
                id=f"qc_performance_{qc_name}",
                type=AnomalyType.QUALITY_DROP,
                severity=AnomalySeverity.CRITICAL if rate > QC_REJECTION_CRITICAL else AnomalySeverity.HIGH,
                title=f"QC Performance Issue: {qc_name}",
                description=f"{rate * 100:.1f}% rejection rate ({stats['rejected']}/{stats['total']} jobs)",
                affected_jobs=[
                    j.jid for j in jobs
                    if j.qc_name == qc_name and j.qc_status == QCStatus.REJECTED.value
                ],
                batch_id=batch_id,
                detected_at=detected_at,
                suggested_action=f"Review {qc_name}'s recent work and provide guidance",
            ))
        return anomalies

    def _detect_processing_delay(self, jobs: List[Job], batch_id: Optional[str], detected_at: str) -> List[Anomaly]:
        onf = [j for j in jobs if j.qc_status == QCStatus.OUTPUT_NOT_FOUND.value]
        if len(onf) <= len(jobs) * ONF_THRESHOLD:
            return []

        return [Anomaly(
            id='processing_delay_1',
            type=AnomalyType.PROCESSING_DELAY,
            severity=AnomalySeverity.HIGH if len(onf) > len(jobs) * ONF_HIGH else AnomalySeverity.MEDIUM,
            title='High Output Not Found Rate',
            description=f"{len(onf)} jobs with missing outputs ({len(onf) / len(jobs) * 100:.1f}%)",
            affected_jobs=[j.jid for j in onf],
            batch_id=batch_id,
            detected_at=detected_at,
            suggested_action='Check annotation pipeline and file generation process',
        )]


def quality_score(jobs: Sequence[Job], anomalies: Sequence[Anomaly], batch_id: Optional[str] = None) -> float:
    """Acceptance percentage minus a fixed deduction per anomaly, clamped to 0-100."""
    relevant = scope_jobs(jobs, batch_id)
    if not relevant:
        return 100.0

    accepted = len([j for j in relevant if j.qc_status == QCStatus.ACCEPTED.value])
    base_score = accepted / len(relevant) * 100
    deduction = sum(SEVERITY_DEDUCTIONS[a.severity] for a in anomalies)
    return max(0.0, min(100.0, base_score - deduction))


def severity_counts(anomalies: Sequence[Anomaly]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in sorted(AnomalySeverity, key=lambda s: s.rank, reverse=True)}
    for anomaly in anomalies:
        counts[anomaly.severity.value] += 1
    return counts
