"""
QC Job Tracking Dashboard Package

CSV ingestion, batch merge, anomaly detection and export for annotation jobs
moving through a quality-control workflow.
"""

__version__ = "1.0.0"
__author__ = "QC Dashboard Team"
