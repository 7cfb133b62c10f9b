"""
Core job tracking modules.

This package contains the core functionality for:
- Job, batch and anomaly data models
- Fixed-format and header-inferred CSV parsing
- Batch CSV schema validation
- Batch merge engine and job store
- CSV export
- Configuration management
"""

from .job_models import Job, BatchInfo, BatchType, QCStatus, Anomaly, AnomalyType, AnomalySeverity
from .csv_parser import parse_csv_to_jobs, parse_csv_to_batch
from .schema_validator import validate_csv_schema, SchemaValidationResult
from .batch_manager import JobStore, generate_batch_id, merge_batch_jobs, CSVImportError, JobNotFoundError
from .csv_export import jobs_to_csv, batch_jobs_to_csv

__all__ = [
    'Job',
    'BatchInfo',
    'BatchType',
    'QCStatus',
    'Anomaly',
    'AnomalyType',
    'AnomalySeverity',
    'parse_csv_to_jobs',
    'parse_csv_to_batch',
    'validate_csv_schema',
    'SchemaValidationResult',
    'JobStore',
    'generate_batch_id',
    'merge_batch_jobs',
    'CSVImportError',
    'JobNotFoundError',
    'jobs_to_csv',
    'batch_jobs_to_csv',
]
