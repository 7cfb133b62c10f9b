"""
Dashboard Analytics Engine

KPI calculation for the QC job tracking dashboard, plus deterministic
Markdown summary templates built from the computed metrics and anomalies.
"""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Dict, List, Optional, Any, Sequence

from dateutil import parser as date_parser
from dateutil.parser import ParserError

from ..core.job_models import Anomaly, BatchInfo, BatchType, Job, QCStatus
from .anomaly_detection import scope_jobs, severity_counts

logger = logging.getLogger(__name__)


@dataclass
class DashboardMetrics:
    """Headline numbers for the overview page."""

    # Volume
    total_jobs: int
    accepted_jobs: int
    rejected_jobs: int
    pending_jobs: int
    output_not_found_jobs: int

    # Rates (percent, one decimal)
    acceptance_rate: float
    rejection_rate: float

    # Reviewers
    qc_reviewer_count: int
    avg_jobs_per_reviewer: int

    status_breakdown: Dict[str, int]
    made_on_reference_day: int
    structural_error_count: int
    batch_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchSummary:
    """Totals shown above the batch list."""
    batch_count: int
    total_jobs: int
    fresh_batches: int
    qced_batches: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_making_date(value: str) -> Optional[date]:
    """Parse a free-form making date such as ``8/22/2025``; ``None`` if unparseable."""
    if not value:
        return None
    try:
        return date_parser.parse(value).date()
    except (ParserError, ValueError, OverflowError):
        return None


def _rate(count: int, total: int) -> float:
    return round(count / total * 100, 1) if total > 0 else 0.0


class DashboardAnalytics:
    """Core metrics calculation over the job collection."""

    def calculate_metrics(self, jobs: Sequence[Job], batch_id: Optional[str] = None,
                          reference_day: Optional[date] = None) -> DashboardMetrics:
        relevant = scope_jobs(jobs, batch_id)
        reference_day = reference_day or date.today()
        total = len(relevant)

        accepted = len([j for j in relevant if j.qc_status == QCStatus.ACCEPTED.value])
        rejected = len([j for j in relevant if j.qc_status == QCStatus.REJECTED.value])
        pending = len([
            j for j in relevant
            if j.qc_status == QCStatus.DONE.value or j.data_status == QCStatus.DONE.value
        ])
        onf = len([j for j in relevant if j.qc_status == QCStatus.OUTPUT_NOT_FOUND.value])

        breakdown: Dict[str, int] = {}
        for job in relevant:
            breakdown[job.qc_status] = breakdown.get(job.qc_status, 0) + 1

        reviewers = {j.qc_name for j in relevant if j.qc_name}

        return DashboardMetrics(
            total_jobs=total,
            accepted_jobs=accepted,
            rejected_jobs=rejected,
            pending_jobs=pending,
            output_not_found_jobs=onf,
            acceptance_rate=_rate(accepted, total),
            rejection_rate=_rate(rejected, total),
            qc_reviewer_count=len(reviewers),
            avg_jobs_per_reviewer=round(total / len(reviewers)) if reviewers else 0,
            status_breakdown=breakdown,
            made_on_reference_day=len([
                j for j in relevant if parse_making_date(j.making_date) == reference_day
            ]),
            structural_error_count=len([j for j in relevant if 'retrror' in (j.reject_reason or '')]),
            batch_id=batch_id,
        )

    def summarize_batches(self, batches: Sequence[BatchInfo]) -> BatchSummary:
        return BatchSummary(
            batch_count=len(batches),
            total_jobs=sum(b.job_count for b in batches),
            fresh_batches=len([b for b in batches if b.type == BatchType.FRESH]),
            qced_batches=len([b for b in batches if b.type == BatchType.QCED]),
        )


class SummaryMarkdownConverter:
    """Deterministic metrics-to-Markdown summary templates."""

    @staticmethod
    def convert_to_markdown(metrics: DashboardMetrics, anomalies: List[Anomaly], score: float,
                            template_type: str = "executive",
                            generated_at: Optional[datetime] = None) -> str:
        generated_at = generated_at or datetime.now()
        if template_type == "operational":
            return SummaryMarkdownConverter._operational_template(metrics, anomalies, score, generated_at)
        return SummaryMarkdownConverter._executive_template(metrics, anomalies, score, generated_at)

    @staticmethod
    def _scope_label(metrics: DashboardMetrics) -> str:
        return metrics.batch_id or "All batches"

    @staticmethod
    def _executive_template(metrics: DashboardMetrics, anomalies: List[Anomaly], score: float,
                            generated_at: datetime) -> str:
        return f"""# QC Executive Summary

**Scope:** {SummaryMarkdownConverter._scope_label(metrics)}
**Report Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S')}

## Key Indicators
- **Total Jobs:** {metrics.total_jobs}
- **Acceptance Rate:** {metrics.acceptance_rate:.1f}%
- **Rejection Rate:** {metrics.rejection_rate:.1f}%
- **Output Not Found:** {metrics.output_not_found_jobs}
- **Quality Score:** {score:.1f}%

## Top Issues Requiring Attention

{SummaryMarkdownConverter._format_top_anomalies(anomalies)}

---
*Report generated automatically from current job records*"""

    @staticmethod
    def _operational_template(metrics: DashboardMetrics, anomalies: List[Anomaly], score: float,
                              generated_at: datetime) -> str:
        return f"""# QC Operational Report

**Scope:** {SummaryMarkdownConverter._scope_label(metrics)} | **Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S')}

## Volume & Outcomes

| Metric | Value | Status |
|--------|-------|--------|
| Acceptance Rate | {metrics.acceptance_rate:.1f}% | {'🟢 Good' if metrics.acceptance_rate >= 90 else '🟡 Needs Attention' if metrics.acceptance_rate >= 70 else '🔴 Critical'} |
| Rejection Rate | {metrics.rejection_rate:.1f}% | {'🟢 Good' if metrics.rejection_rate <= 10 else '🟡 Needs Attention' if metrics.rejection_rate <= 25 else '🔴 Critical'} |
| Quality Score | {score:.1f}% | {'🟢 Good' if score >= 90 else '🟡 Needs Attention' if score >= 70 else '🔴 Critical'} |
| Pending | {metrics.pending_jobs} | |

## Reviewers
- **Active QC Reviewers:** {metrics.qc_reviewer_count}
- **Average Jobs per Reviewer:** {metrics.avg_jobs_per_reviewer}

## Status Breakdown
```json
{json.dumps(metrics.status_breakdown, indent=2, sort_keys=True)}
```

## Anomalies

{SummaryMarkdownConverter._format_anomaly_table(anomalies)}

---
*Operational metrics recomputed on request*"""

    @staticmethod
    def _format_top_anomalies(anomalies: List[Anomaly]) -> str:
        if not anomalies:
            return "No anomalies detected ✅"

        result = ""
        for i, anomaly in enumerate(anomalies[:3], 1):
            result += f"{i}. **{anomaly.title}** ({anomaly.severity.value}): {anomaly.description}\n"
        return result

    @staticmethod
    def _format_anomaly_table(anomalies: List[Anomaly]) -> str:
        if not anomalies:
            return "No anomalies detected ✅"

        counts = severity_counts(anomalies)
        table = " | ".join(f"{sev}: {count}" for sev, count in counts.items()) + "\n\n"
        table += "| Severity | Anomaly | Affected Jobs | Suggested Action |\n|---|---|---|---|\n"
        for anomaly in anomalies:
            table += (f"| {anomaly.severity.value} | {anomaly.title} | {len(anomaly.affected_jobs)} "
                      f"| {anomaly.suggested_action} |\n")
        return table
