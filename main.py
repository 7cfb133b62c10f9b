#!/usr/bin/env python3
"""
QC Job Tracking Dashboard - Main Entry Point

Usage:
    python main.py serve                          # Run the dashboard API
    python main.py validate batch.csv             # Validate a batch CSV
    python main.py import batch.csv               # Import a batch and export the result
    python main.py anomalies                      # Show anomalies for the bundled dataset
    python main.py export                         # Export the bundled dataset as CSV
    python main.py config                         # Create sample config
    python main.py info                           # Show environment information
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from qc_dashboard.core.config_manager import ConfigurationManager
from qc_dashboard.core.batch_manager import JobStore, CSVImportError
from qc_dashboard.core.job_models import BatchType
from qc_dashboard.core.schema_validator import validate_csv_schema
from qc_dashboard.dashboard.anomaly_detection import AnomalyDetector, quality_score, severity_counts

# Load environment variables early
load_dotenv()

logger = logging.getLogger(__name__)


def setup_basic_logging():
    """Setup basic logging before configuration is loaded."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def show_environment_info(config):
    """Show environment information for debugging."""
    env_info = ConfigurationManager.get_environment_info()

    print("🔧 Environment Information:")
    print(f"   Python: {env_info['python_version']}")
    print(f"   Platform: {env_info['platform']}")
    print(f"   Working Directory: {env_info['working_directory']}")

    print("\n⚙️  Configuration:")
    print(f"   Initial Data: {config['data']['initial_data_path']}")
    print(f"   Load On Startup: {'Yes' if config['data']['load_on_startup'] else 'No'}")
    print(f"   Server: {config['server']['host']}:{config['server']['port']}")
    print(f"   Export Directory: {config['output']['export_directory']}")


def build_store(config) -> JobStore:
    """Create a job store seeded with the bundled dataset, if present."""
    store = JobStore(
        default_user=config['users']['default_user'],
        system_user=config['users']['system_user'],
        initial_batch_name=config['data']['initial_batch_name'],
    )
    data_path = Path(config['data']['initial_data_path'])
    if data_path.exists():
        store.load_initial_data(data_path.read_text(encoding='utf-8'))
    else:
        logger.warning(f"⚠️  Initial data not found at {data_path}; starting empty")
    return store


def write_export(config, store: JobStore, batch_id=None, output=None) -> Path:
    filename, content = store.export_csv(batch_id)
    target = Path(output) if output else Path(config['output']['export_directory']) / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding='utf-8')
    logger.info(f"💾 Export saved to: {target}")
    return target


def run_validate(filename, batch_type: BatchType) -> int:
    content = Path(filename).read_text(encoding='utf-8-sig')
    result = validate_csv_schema(content, batch_type)
    if result.valid:
        logger.info(f"✅ {filename} is a valid {batch_type.value} batch")
        return 0
    for error in result.errors:
        logger.error(f"❌ {error}")
    return 1


def run_import(config, filename, batch_type: BatchType, batch_name, output) -> int:
    store = build_store(config)
    content = Path(filename).read_text(encoding='utf-8-sig')
    try:
        batch, jobs = store.import_batch(content, batch_type, batch_name)
    except CSVImportError as e:
        for error in e.errors:
            logger.error(f"❌ {error}")
        return 1

    logger.info("📋 Import Summary:")
    logger.info(f"   🗂️  Batch: {batch.id} ({batch.name})")
    logger.info(f"   📄 Parsed Jobs: {len(jobs)}")
    logger.info(f"   📊 Total Jobs: {len(store.get_jobs())}")
    write_export(config, store, batch.id, output)
    return 0


def run_anomalies(config, batch_id) -> int:
    store = build_store(config)
    jobs = store.get_jobs()
    anomalies = AnomalyDetector().detect(jobs, batch_id)

    print(f"🧠 {len(anomalies)} anomalies detected • Quality Score: {quality_score(jobs, anomalies, batch_id):.1f}%")
    print("   " + " | ".join(f"{sev}: {count}" for sev, count in severity_counts(anomalies).items()))
    for anomaly in anomalies:
        print(f"\n[{anomaly.severity.value.upper()}] {anomaly.title}")
        print(f"   {anomaly.description}")
        print(f"   Affected jobs: {len(anomaly.affected_jobs)}")
        print(f"   💡 {anomaly.suggested_action}")
    return 0


def main():
    """Main entry point."""
    setup_basic_logging()

    parser = argparse.ArgumentParser(
        description="QC Job Tracking Dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve                                  # Start the dashboard API
  python main.py validate qc.csv --batch-type QCed      # Validate a QC'ed batch
  python main.py import fresh.csv --batch-name "Week 3" # Import a Fresh batch
  python main.py anomalies --batch-id Batch-1           # Anomalies for one batch
  python main.py export --output jobs.csv               # Export all jobs
        """
    )

    parser.add_argument(
        'mode',
        choices=['serve', 'validate', 'import', 'anomalies', 'export', 'config', 'info'],
        help='Command to run'
    )

    parser.add_argument(
        'filename',
        nargs='?',
        help='Batch CSV file (required for validate and import)'
    )

    parser.add_argument(
        '--batch-type',
        choices=[t.value for t in BatchType],
        default=BatchType.FRESH.value,
        help='Batch type of the CSV file'
    )

    parser.add_argument('--batch-name', help='Name for the imported batch')
    parser.add_argument('--batch-id', help='Limit anomalies/export to one batch')
    parser.add_argument('--output', help='Export file path')

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override log level'
    )

    args = parser.parse_args()

    if args.mode == 'config':
        ConfigurationManager.create_sample_env_file()
        return

    try:
        config = ConfigurationManager.load_configuration()

        if args.log_level:
            config['logging']['level'] = args.log_level

        ConfigurationManager.setup_logging(config)

        if args.mode == 'info':
            show_environment_info(config)
            return

        if args.mode in ('validate', 'import') and not args.filename:
            logger.error(f"❌ Filename is required for {args.mode} mode")
            parser.print_help()
            sys.exit(1)

        batch_type = BatchType(args.batch_type)

        if args.mode == 'serve':
            import uvicorn
            uvicorn.run(
                "qc_dashboard.dashboard.dashboard_app:app",
                host=config['server']['host'],
                port=config['server']['port'],
                log_level=config['logging']['level'].lower()
            )
        elif args.mode == 'validate':
            sys.exit(run_validate(args.filename, batch_type))
        elif args.mode == 'import':
            sys.exit(run_import(config, args.filename, batch_type, args.batch_name, args.output))
        elif args.mode == 'anomalies':
            sys.exit(run_anomalies(config, args.batch_id))
        elif args.mode == 'export':
            write_export(config, build_store(config), args.batch_id, args.output)

    except KeyboardInterrupt:
        logger.info("🛑 Application stopped by user")
    except (OSError, ValueError) as e:
        logger.error(f"❌ Application failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
