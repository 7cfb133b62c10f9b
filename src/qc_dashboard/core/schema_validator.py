"""
Batch CSV Schema Validator

Pre-import checks for uploaded batch files: minimum structure, required
columns for the batch type and duplicate job identifiers. All checks run and
their errors accumulate; the import flow treats any error as blocking.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from .csv_parser import COLUMN_RULES, split_lines, parse_header, clean_cell, find_column, job_id_rule
from .job_models import BatchType

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: Dict[BatchType, List[str]] = {
    BatchType.FRESH: ['job_id', 'ref_id', 'client_file_name'],
    BatchType.QCED: [
        'job_id', 'client_file', 'data_status', 'making_date',
        'qc_name', 'qc_date', 'qc_status', 'action'
    ],
}

# Required column name -> parser rule key
_RULE_FOR_COLUMN = {
    'client_file_name': 'client_file',
}

_BATCH_LABELS = {
    BatchType.FRESH: "Fresh Data",
    BatchType.QCED: "QC'ed Data",
}

MAX_LISTED_DUPLICATES = 5


@dataclass
class SchemaValidationResult:
    """Outcome of validating a batch CSV."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return {'valid': self.valid, 'errors': list(self.errors)}


def missing_required_columns(headers: List[str], batch_type: BatchType) -> List[str]:
    """Return required column names that no header satisfies."""
    missing = []
    for column in REQUIRED_COLUMNS[batch_type]:
        if column == 'job_id':
            rule = job_id_rule(batch_type)
        else:
            rule = COLUMN_RULES[_RULE_FOR_COLUMN.get(column, column)]
        if find_column(headers, rule) is None:
            missing.append(column)
    return missing


def find_duplicate_job_ids(lines: List[str]) -> List[str]:
    """Scan each data row's first column; report ``Row <n>: <id>`` entries.

    Every occurrence of a repeated id is listed, in row order. Row numbers
    are 1-indexed against the original file, header included.
    """
    rows = []
    for i in range(1, len(lines)):
        line = lines[i].strip()
        if not line:
            continue
        job_id = clean_cell(line.split(',')[0])
        if job_id:
            rows.append((i + 1, job_id))

    counts = Counter(job_id for _, job_id in rows)
    return [f"Row {row}: {job_id}" for row, job_id in rows if counts[job_id] > 1]


def validate_csv_schema(csv_content: str, batch_type: BatchType) -> SchemaValidationResult:
    """Validate an uploaded CSV against the schema for ``batch_type``."""
    lines = split_lines(csv_content)
    errors: List[str] = []

    if len(lines) < 2:
        errors.append('CSV file must contain at least a header row and one data row')

    headers = parse_header(lines[0]) if lines else []
    missing = missing_required_columns(headers, batch_type)
    if missing:
        errors.append(f"Missing required columns for {_BATCH_LABELS[batch_type]}: {', '.join(missing)}")

    duplicates = find_duplicate_job_ids(lines)
    if duplicates:
        message = f"Duplicate Job IDs found: {', '.join(duplicates[:MAX_LISTED_DUPLICATES])}"
        if len(duplicates) > MAX_LISTED_DUPLICATES:
            message += f" and {len(duplicates) - MAX_LISTED_DUPLICATES} more..."
        errors.append(message)

    if errors:
        logger.warning(f"{batch_type.value} batch CSV failed validation: {'; '.join(errors)}")

    return SchemaValidationResult(valid=not errors, errors=errors)
