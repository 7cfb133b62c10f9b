"""
Dashboard Web Application

FastAPI-based API backing the QC job tracking dashboard: job and batch
queries, CSV batch import and export, anomaly detection and KPI summaries.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from ..core.batch_manager import JobStore, LoggingNotifier, CSVImportError, JobNotFoundError
from ..core.config_manager import ConfigurationManager
from ..core.job_models import BatchType
from ..core.schema_validator import validate_csv_schema
from .anomaly_detection import AnomalyDetector, quality_score, severity_counts
from .dashboard_analytics import DashboardAnalytics, SummaryMarkdownConverter

logger = logging.getLogger(__name__)


class StatusUpdate(BaseModel):
    qc_status: str


class AssignmentRequest(BaseModel):
    job_ids: List[str]
    assigned_to: str
    assigned_by: Optional[str] = None


def load_bundled_data(store: JobStore, data_path: str) -> int:
    """Load the fixed-format dataset into ``store``; returns jobs loaded."""
    path = Path(data_path)
    try:
        content = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to load initial data from {path}: {e}")
        store.notifier("Error", "Failed to load job data", "error")
        return 0

    batch = store.load_initial_data(content)
    return batch.job_count


# Global instances
config = ConfigurationManager.load_configuration()
notifier = LoggingNotifier()
job_store = JobStore(
    notifier=notifier,
    default_user=config['users']['default_user'],
    system_user=config['users']['system_user'],
    initial_batch_name=config['data']['initial_batch_name'],
)
anomaly_detector = AnomalyDetector()
analytics = DashboardAnalytics()
markdown_converter = SummaryMarkdownConverter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting QC dashboard application...")

    if config['data']['load_on_startup']:
        loaded = load_bundled_data(job_store, config['data']['initial_data_path'])
        logger.info(f"📊 Job store now has {loaded} jobs loaded")
    else:
        logger.info("Initial data loading disabled; starting with an empty job store")

    yield

    logger.info("Shutting down QC dashboard application...")


app = FastAPI(
    title="QC Job Tracking Dashboard",
    description="Batch import, anomaly detection and KPI API for annotation QC tracking",
    version="1.0.0",
    lifespan=lifespan
)


def _parse_batch_type(value: str) -> BatchType:
    try:
        return BatchType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown batch type: {value}. Expected Fresh or QCed")


async def _read_upload(file: UploadFile) -> str:
    if not (file.filename or '').lower().endswith('.csv'):
        raise HTTPException(status_code=400, detail="Please select a CSV file")
    try:
        return (await file.read()).decode('utf-8-sig')
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Failed to parse CSV file")


def _csv_response(filename: str, content: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "jobs_loaded": len(job_store.get_jobs()),
        "batches": len(job_store.get_batches()),
    }


@app.get("/api/jobs")
async def get_jobs(batch_id: Optional[str] = Query(None, description="Limit to one batch")):
    """List jobs, optionally for one batch."""
    jobs = job_store.get_jobs(batch_id)
    return {
        "jobs": [job.to_dict() for job in jobs],
        "total_count": len(jobs),
        "batch_id": batch_id,
    }


@app.patch("/api/jobs/{jid}/status")
async def update_job_status(jid: str, update: StatusUpdate):
    """Update the QC status of a single job."""
    try:
        job = job_store.update_job_status(jid, update.qc_status)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail=f"Job not found: {jid}")
    return {"success": True, "job": job.to_dict()}


@app.post("/api/jobs/assign")
async def assign_jobs(request: AssignmentRequest):
    """Assign jobs to a QC reviewer."""
    assigned = job_store.assign_jobs(request.job_ids, request.assigned_to, request.assigned_by)
    return {
        "success": True,
        "assigned_count": assigned,
        "message": f"Assigned {len(request.job_ids)} jobs to {request.assigned_to}",
    }


@app.get("/api/batches")
async def get_batches():
    """List import batches."""
    return {"batches": [batch.to_dict() for batch in job_store.get_batches()]}


@app.get("/api/batches/summary")
async def get_batch_summary():
    """Batch totals for the batch manager header."""
    return analytics.summarize_batches(job_store.get_batches()).to_dict()


@app.post("/api/batches/validate")
async def validate_batch(
    file: UploadFile = File(...),
    batch_type: str = Form("Fresh"),
):
    """Validate an uploaded CSV without importing it."""
    content = await _read_upload(file)
    result = validate_csv_schema(content, _parse_batch_type(batch_type))
    return result.to_dict()


@app.post("/api/batches/import")
async def import_batch(
    file: UploadFile = File(...),
    batch_type: str = Form("Fresh"),
    batch_name: str = Form(""),
    uploaded_by: Optional[str] = Form(None),
):
    """Validate and import an uploaded batch CSV."""
    content = await _read_upload(file)
    parsed_type = _parse_batch_type(batch_type)
    try:
        batch, jobs = job_store.import_batch(content, parsed_type, batch_name, uploaded_by)
    except CSVImportError as e:
        raise HTTPException(status_code=400, detail={"valid": False, "errors": e.errors})
    except Exception as e:
        logger.error(f"Error importing batch: {str(e)}")
        job_store.notifier("Import Failed", "Failed to parse CSV file", "error")
        raise HTTPException(status_code=500, detail=f"Error importing batch: {str(e)}")

    return {
        "success": True,
        "batch": batch.to_dict(),
        "parsed_jobs": len(jobs),
        "total_jobs": len(job_store.get_jobs()),
        "message": f"Created {batch.name} with {len(jobs)} jobs",
    }


@app.get("/api/export")
async def export_jobs(batch_id: Optional[str] = Query(None, description="Export one batch with batch columns")):
    """Download jobs as CSV."""
    filename, content = job_store.export_csv(batch_id)
    return _csv_response(filename, content)


@app.get("/api/batches/{batch_id}/export")
async def export_batch(batch_id: str):
    """Download one batch as CSV."""
    if job_store.get_batch(batch_id) is None:
        raise HTTPException(status_code=404, detail=f"Batch not found: {batch_id}")
    filename, content = job_store.export_batch(batch_id)
    return _csv_response(filename, content)


@app.get("/api/anomalies")
async def get_anomalies(batch_id: Optional[str] = Query(None, description="Limit to one batch")):
    """Run anomaly detection and compute the quality score."""
    try:
        jobs = job_store.get_jobs()
        anomalies = anomaly_detector.detect(jobs, batch_id)
        return {
            "anomalies": [a.to_dict() for a in anomalies],
            "quality_score": round(quality_score(jobs, anomalies, batch_id), 1),
            "severity_counts": severity_counts(anomalies),
            "batch_id": batch_id,
            "generated_at": datetime.now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Error detecting anomalies: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error detecting anomalies: {str(e)}")


@app.get("/api/kpis")
async def get_kpis(batch_id: Optional[str] = Query(None, description="Limit to one batch")):
    """Get dashboard KPI data."""
    try:
        metrics = analytics.calculate_metrics(job_store.get_jobs(), batch_id)
        return {
            "metrics": metrics.to_dict(),
            "generated_at": datetime.now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Error generating KPIs: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error generating KPIs: {str(e)}")


@app.get("/api/summary/{template_type}")
async def get_markdown_summary(
    template_type: str,
    batch_id: Optional[str] = Query(None, description="Limit to one batch"),
):
    """Get structured markdown summary."""
    if template_type not in ("executive", "operational"):
        raise HTTPException(status_code=404, detail=f"Unknown summary template: {template_type}")
    try:
        jobs = job_store.get_jobs()
        metrics = analytics.calculate_metrics(jobs, batch_id)
        anomalies = anomaly_detector.detect(jobs, batch_id)
        score = quality_score(jobs, anomalies, batch_id)
        return {
            "summary": markdown_converter.convert_to_markdown(metrics, anomalies, score, template_type),
            "template_type": template_type,
            "batch_id": batch_id,
            "generated_at": datetime.now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Error generating summary: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error generating summary: {str(e)}")


@app.get("/api/notifications")
async def get_notifications(limit: int = Query(20, description="Maximum number of notifications")):
    """Recent success/failure notifications."""
    return {"notifications": notifier.recent(limit)}


@app.post("/api/reload")
async def reload_initial_data():
    """Reload the bundled dataset, discarding imported batches."""
    loaded = load_bundled_data(job_store, config['data']['initial_data_path'])
    return {
        "success": loaded > 0,
        "loaded_count": loaded,
        "message": f"Loaded {loaded} jobs from {config['data']['initial_data_path']}",
    }
