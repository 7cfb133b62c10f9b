"""
Batch Management and Job Store

Reconciles imported batches against the in-memory job collection and owns
the job/batch state used by the dashboard.

Merge policy by batch type:
- QCed: upsert on ``jid``; fields on the incoming record win.
- Fresh: append-only; incoming jobs whose ``jid`` already exists are dropped.
"""

import logging
import re
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Any

from .csv_export import jobs_to_csv, batch_jobs_to_csv, export_filename
from .csv_parser import parse_csv_to_jobs, parse_csv_to_batch
from .job_models import Job, BatchInfo, BatchType
from .schema_validator import validate_csv_schema

logger = logging.getLogger(__name__)

_BATCH_ID_PATTERN = re.compile(r'Batch-(\d+)')

Notifier = Callable[..., None]


class CSVImportError(ValueError):
    """Raised when an uploaded batch fails validation; nothing is imported."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class JobNotFoundError(KeyError):
    """Raised for operations on a jid that is not in the collection."""


def generate_batch_id(existing_batches: Sequence[BatchInfo]) -> str:
    """Next ``Batch-<n>`` id, one past the highest numeric suffix seen."""
    max_id = 0
    for batch in existing_batches:
        match = _BATCH_ID_PATTERN.search(batch.id)
        if match:
            max_id = max(max_id, int(match.group(1)))
    return f"Batch-{max_id + 1}"


def merge_batch_jobs(existing: Sequence[Job], new_jobs: Sequence[Job], batch_type: BatchType) -> List[Job]:
    """Fold ``new_jobs`` into ``existing`` and return the new collection."""
    merged = list(existing)
    positions: Dict[str, int] = {job.jid: i for i, job in enumerate(merged)}

    for job in new_jobs:
        index = positions.get(job.jid)
        if index is None:
            positions[job.jid] = len(merged)
            merged.append(job)
        elif batch_type == BatchType.QCED:
            merged[index] = merged[index].merged_with(job)
        # Fresh: first write wins

    return merged


class LoggingNotifier:
    """Notification sink that logs messages and keeps the most recent ones."""

    _LEVELS = {
        'info': logging.INFO,
        'success': logging.INFO,
        'warning': logging.WARNING,
        'error': logging.ERROR,
    }

    def __init__(self, max_history: int = 50):
        self.history = deque(maxlen=max_history)

    def __call__(self, title: str, description: str, level: str = "info"):
        logger.log(self._LEVELS.get(level, logging.INFO), f"{title}: {description}")
        self.history.append({
            'title': title,
            'description': description,
            'level': level,
            'timestamp': datetime.now().isoformat(),
        })

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        return list(self.history)[-limit:]


class JobStore:
    """Owns the job collection and batch list.

    Mutations always replace the whole collection, so readers holding the
    result of :meth:`get_jobs` never observe a partial update.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        default_user: str = "Current User",
        system_user: str = "System",
        initial_batch_name: str = "Initial Data",
    ):
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or datetime.now
        self.default_user = default_user
        self.system_user = system_user
        self.initial_batch_name = initial_batch_name

        self._jobs: List[Job] = []
        self._batches: List[BatchInfo] = []

    # Queries

    def get_jobs(self, batch_id: Optional[str] = None) -> List[Job]:
        if batch_id:
            return [job for job in self._jobs if job.batch_id == batch_id]
        return list(self._jobs)

    def get_job(self, jid: str) -> Job:
        for job in self._jobs:
            if job.jid == jid:
                return job
        raise JobNotFoundError(jid)

    def get_batches(self) -> List[BatchInfo]:
        return list(self._batches)

    def get_batch(self, batch_id: str) -> Optional[BatchInfo]:
        return next((b for b in self._batches if b.id == batch_id), None)

    def next_batch_id(self) -> str:
        return generate_batch_id(self._batches)

    # Mutations

    def apply_merge(self, batch: BatchInfo, jobs: Sequence[Job]) -> int:
        """Merge ``jobs`` according to the batch type; return the net new job count."""
        before = len(self._jobs)
        self._jobs = merge_batch_jobs(self._jobs, jobs, batch.type)
        added = len(self._jobs) - before
        logger.info(f"Merged {len(jobs)} jobs from {batch.id} ({batch.type.value}): {added} new")
        return added

    def record_batch(self, info: BatchInfo):
        self._batches = self._batches + [info]

    def load_initial_data(self, csv_content: str) -> BatchInfo:
        """Replace the store with the fixed-format historical dataset."""
        parsed = parse_csv_to_jobs(csv_content)
        batch = BatchInfo(
            id=generate_batch_id([]),
            name=self.initial_batch_name,
            type=BatchType.QCED,
            upload_date=self.clock().isoformat(),
            uploaded_by=self.system_user,
            job_count=len(parsed),
        )
        for job in parsed:
            job.batch_id = batch.id

        self._jobs = merge_batch_jobs([], parsed, BatchType.QCED)
        self._batches = [batch]
        logger.info(f"Loaded {len(parsed)} jobs into {batch.id} ({batch.name})")
        return batch

    def import_batch(
        self,
        csv_content: str,
        batch_type: BatchType,
        batch_name: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> Tuple[BatchInfo, List[Job]]:
        """Validate, parse and merge an uploaded batch.

        Raises:
            CSVImportError: if validation fails; the store is left unchanged.
        """
        validation = validate_csv_schema(csv_content, batch_type)
        if not validation.valid:
            self.notifier("Import Failed", "; ".join(validation.errors), "error")
            raise CSVImportError(validation.errors)

        now = self.clock()
        batch_id = self.next_batch_id()
        batch = BatchInfo(
            id=batch_id,
            name=(batch_name or "").strip() or batch_id,
            type=batch_type,
            upload_date=now.isoformat(),
            uploaded_by=uploaded_by or self.default_user,
        )

        new_jobs = parse_csv_to_batch(csv_content, batch, batch_type, now=now)
        batch.job_count = len(new_jobs)

        self.apply_merge(batch, new_jobs)
        self.record_batch(batch)

        self.notifier("Batch Import Successful", f"Created {batch.name} with {len(new_jobs)} jobs", "success")
        return batch, new_jobs

    def update_job_status(self, jid: str, qc_status: str) -> Job:
        current = self.get_job(jid)
        updated = replace(current, qc_status=qc_status)
        self._jobs = [updated if job.jid == jid else job for job in self._jobs]
        self.notifier("Job Updated", f"Job {jid} status updated to {qc_status}", "success")
        return updated

    def assign_jobs(self, jids: Sequence[str], assigned_to: str, assigned_by: Optional[str] = None) -> int:
        """Stamp assignment fields on every listed job; unknown jids are ignored."""
        targets = set(jids)
        stamp = self.clock().isoformat()
        assigner = assigned_by or self.default_user

        assigned = 0
        jobs = []
        for job in self._jobs:
            if job.jid in targets:
                job = replace(job, assigned_to=assigned_to, assigned_date=stamp, assigned_by=assigner)
                assigned += 1
            jobs.append(job)
        self._jobs = jobs

        self.notifier("Jobs Assigned", f"Assigned {len(jids)} jobs to {assigned_to}", "success")
        return assigned

    def export_csv(self, batch_id: Optional[str] = None) -> Tuple[str, str]:
        """Return ``(filename, csv_text)`` for the whole collection or the selected batch.

        A selected batch uses the batch columns and a filename built from its id.
        """
        today = self.clock().date()
        if batch_id:
            content = batch_jobs_to_csv(self._jobs, batch_id)
            filename = export_filename(batch_id=batch_id, today=today)
            count = len(self.get_jobs(batch_id))
        else:
            content = jobs_to_csv(self._jobs)
            filename = export_filename(today=today)
            count = len(self._jobs)
        self.notifier("Export Successful", f"Downloaded {count} jobs as CSV", "success")
        return filename, content

    def export_batch(self, batch_id: str) -> Tuple[str, str]:
        """Batch-manager export: filename carries the batch name when it has one."""
        batch = self.get_batch(batch_id)
        name = batch.name if batch else None
        content = batch_jobs_to_csv(self._jobs, batch_id)
        filename = export_filename(batch_id=batch_id, batch_name=name, today=self.clock().date())
        count = len(self.get_jobs(batch_id))
        self.notifier("Batch Export Successful", f"Downloaded {count} jobs from {name or batch_id}", "success")
        return filename, content
