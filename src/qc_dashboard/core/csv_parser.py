"""
CSV Record Parser

Turns raw CSV text into Job records. Two modes are supported:

- Fixed-format mode for the bundled historical dataset, where columns sit at
  known positions and rows are recognised by their ``jid_`` prefix.
- Header-inferred mode for user-uploaded batch files, where column roles are
  resolved by fuzzy, substring-based matching against the header row.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .job_models import Job, BatchInfo, BatchType, QCStatus

logger = logging.getLogger(__name__)

# Fixed-format layout
FIXED_FORMAT_SKIP_LINES = 2
FIXED_FORMAT_MIN_COLUMNS = 8
FIXED_FORMAT_JID_PREFIX = "jid_"
FIXED_FORMAT_FIELDS = [
    'jid', 'ref_id', 'client_file_name', 'data_status', 'making_date',
    'qc_name', 'qc_date', 'qc_status', 'reject_reason', 'rework_date', 'comment'
]

# A rule is a tuple of alternatives; a header matches an alternative when it
# contains every substring of that alternative.
ColumnRule = Tuple[Tuple[str, ...], ...]

COLUMN_RULES = {
    'job_id': (('job', 'id'),),
    'ref_id': (('ref', 'id'),),
    'client_file': (('client', 'file'),),
    'data_status': (('data', 'status'),),
    'making_date': (('making', 'date'),),
    'qc_name': (('qc', 'name'),),
    'qc_date': (('qc', 'date'),),
    'qc_status': (('qc', 'status'),),
    'reject_reason': (('reject',), ('reason',)),
    'rework_date': (('rework', 'date'),),
    'comment': (('comment',),),
    'action': (('action',),),
}

# QC'ed exports frequently label the identifier column plain "JID"
QCED_JOB_ID_RULE: ColumnRule = (('jid',), ('job', 'id'))

_OUTER_QUOTES = re.compile(r'^["\']|["\']$')


def split_lines(csv_content: str) -> List[str]:
    """Split CSV text into raw lines after trimming surrounding whitespace."""
    return csv_content.strip().split('\n')


def parse_header(header_line: str) -> List[str]:
    """Lower-case and trim each header name."""
    return [h.strip() for h in header_line.lower().split(',')]


def clean_cell(value: str) -> str:
    """Trim a cell and strip one outer single/double quote on each side."""
    return _OUTER_QUOTES.sub('', value.strip())


def header_matches(header: str, rule: ColumnRule) -> bool:
    return any(all(part in header for part in alternative) for alternative in rule)


def find_column(headers: Sequence[str], rule: ColumnRule) -> Optional[int]:
    """Return the index of the first header satisfying ``rule``, if any."""
    for index, header in enumerate(headers):
        if header_matches(header, rule):
            return index
    return None


def job_id_rule(batch_type: BatchType) -> ColumnRule:
    return QCED_JOB_ID_RULE if batch_type == BatchType.QCED else COLUMN_RULES['job_id']


def _cell(columns: Sequence[str], index: Optional[int]) -> str:
    if index is None or index >= len(columns):
        return ""
    return columns[index]


def synthetic_job_id(row_index: int, now: Optional[datetime] = None) -> str:
    """Build a placeholder id for a row whose job-id cell is empty."""
    now = now or datetime.now()
    return f"job_{int(now.timestamp() * 1000)}_{row_index}"


def parse_csv_to_jobs(csv_content: str) -> List[Job]:
    """Parse the fixed-format historical dataset.

    The first two lines are summary headers and are skipped. A line becomes a
    job only when it has at least eight columns and its first column starts
    with ``jid_``; anything else is ignored.
    """
    lines = split_lines(csv_content)
    jobs: List[Job] = []
    skipped = 0

    for raw_line in lines[FIXED_FORMAT_SKIP_LINES:]:
        line = raw_line.strip()
        if not line:
            continue

        columns = line.split(',')
        if len(columns) < FIXED_FORMAT_MIN_COLUMNS or not columns[0].startswith(FIXED_FORMAT_JID_PREFIX):
            skipped += 1
            continue

        values = {name: _cell(columns, i) for i, name in enumerate(FIXED_FORMAT_FIELDS)}
        jobs.append(Job(**values))

    logger.debug(f"Fixed-format parse: {len(jobs)} jobs, {skipped} rows skipped")
    return jobs


def parse_csv_to_batch(csv_content: str, batch_info: BatchInfo, batch_type: BatchType,
                       now: Optional[datetime] = None) -> List[Job]:
    """Parse an uploaded batch file using header-name inference.

    Rows with an empty job-id cell receive a synthetic ``job_<ts>_<row>`` id
    rather than being discarded. Every job is stamped with the batch id.
    """
    lines = split_lines(csv_content)
    if len(lines) < 2:
        return []

    headers = parse_header(lines[0])
    now = now or datetime.now()

    jid_index = find_column(headers, job_id_rule(batch_type))
    indexes = {name: find_column(headers, rule) for name, rule in COLUMN_RULES.items()}

    jobs: List[Job] = []
    for row_index in range(1, len(lines)):
        line = lines[row_index].strip()
        if not line:
            continue

        columns = [clean_cell(col) for col in line.split(',')]
        jid = _cell(columns, jid_index) or synthetic_job_id(row_index, now)

        if batch_type == BatchType.FRESH:
            job = Job(
                jid=jid,
                ref_id=_cell(columns, indexes['ref_id']),
                client_file_name=_cell(columns, indexes['client_file']),
                qc_status=QCStatus.NOT_STARTED.value,
                batch_id=batch_info.id,
            )
        else:
            job = Job(
                jid=jid,
                ref_id=_cell(columns, indexes['ref_id']),
                client_file_name=_cell(columns, indexes['client_file']),
                data_status=_cell(columns, indexes['data_status']) or QCStatus.DONE.value,
                making_date=_cell(columns, indexes['making_date']),
                qc_name=_cell(columns, indexes['qc_name']),
                qc_date=_cell(columns, indexes['qc_date']),
                qc_status=_cell(columns, indexes['qc_status']) or QCStatus.NOT_STARTED.value,
                reject_reason=_cell(columns, indexes['reject_reason']),
                rework_date=_cell(columns, indexes['rework_date']),
                comment=_cell(columns, indexes['comment']),
                batch_id=batch_info.id,
            )
        jobs.append(job)

    logger.info(f"Parsed {len(jobs)} {batch_type.value} jobs for {batch_info.id}")
    return jobs
