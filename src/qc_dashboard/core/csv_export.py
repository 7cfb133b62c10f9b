"""
CSV export for job collections.

Every cell is wrapped in double quotes and the header row is always written,
even for an empty collection.
"""

import csv
import io
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .job_models import Job

JOB_EXPORT_COLUMNS = [
    ('JID', 'jid'),
    ('Ref ID', 'ref_id'),
    ('Client File Name', 'client_file_name'),
    ('Data Status', 'data_status'),
    ('Making Date', 'making_date'),
    ('QC Name', 'qc_name'),
    ('QC Date', 'qc_date'),
    ('QC Status', 'qc_status'),
    ('Reject Reason', 'reject_reason'),
    ('Rework Date', 'rework_date'),
    ('Comment', 'comment'),
]

BATCH_EXPORT_COLUMNS = JOB_EXPORT_COLUMNS + [
    ('Batch ID', 'batch_id'),
    ('Assigned To', 'assigned_to'),
    ('Assigned Date', 'assigned_date'),
    ('Assigned By', 'assigned_by'),
]


def _flatten(job: Job, columns: List[Tuple[str, str]]) -> Dict[str, str]:
    return {header: getattr(job, attr) or '' for header, attr in columns}


def _write_csv(jobs: Iterable[Job], columns: List[Tuple[str, str]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=[header for header, _ in columns],
        quoting=csv.QUOTE_ALL,
        lineterminator='\n'
    )
    writer.writeheader()
    for job in jobs:
        writer.writerow(_flatten(job, columns))
    # Rows are newline-joined; no trailing terminator
    return buffer.getvalue().rstrip('\n')


def jobs_to_csv(jobs: Iterable[Job]) -> str:
    """Plain 11-column export."""
    return _write_csv(jobs, JOB_EXPORT_COLUMNS)


def batch_jobs_to_csv(jobs: Iterable[Job], batch_id: Optional[str] = None) -> str:
    """Batch-aware 15-column export, optionally limited to one batch."""
    if batch_id:
        jobs = [job for job in jobs if job.batch_id == batch_id]
    return _write_csv(jobs, BATCH_EXPORT_COLUMNS)


def export_filename(batch_id: Optional[str] = None, batch_name: Optional[str] = None,
                    today: Optional[date] = None) -> str:
    stamp = (today or date.today()).isoformat()
    if batch_id or batch_name:
        return f"batch_{batch_name or batch_id}_export_{stamp}.csv"
    return f"jobs_export_{stamp}.csv"
