"""
Configuration Manager

Handles loading and validating configuration from environment variables
and configuration files.
"""

import os
import sys
import logging
from typing import Dict, Any
from pathlib import Path

logger = logging.getLogger(__name__)


class ConfigurationManager:
    """Manages application configuration loading and validation."""

    @staticmethod
    def load_configuration() -> Dict[str, Any]:
        """Load configuration from environment variables and defaults."""
        config = {
            'data': {
                'initial_data_path': os.getenv('QC_DATA_PATH', 'data/jobs.csv'),
                'load_on_startup': os.getenv('QC_LOAD_ON_STARTUP', 'true').lower() == 'true',
                'initial_batch_name': os.getenv('QC_INITIAL_BATCH_NAME', 'Initial Data'),
            },
            'users': {
                'default_user': os.getenv('QC_DEFAULT_USER', 'Current User'),
                'system_user': os.getenv('QC_SYSTEM_USER', 'System'),
            },
            'server': {
                'host': os.getenv('DASHBOARD_HOST', '0.0.0.0'),
                'port': int(os.getenv('DASHBOARD_PORT', '8000')),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO').upper(),
                'format': os.getenv('LOG_FORMAT', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
                'file': os.getenv('LOG_FILE', ''),
            },
            'output': {
                'export_directory': os.getenv('EXPORT_DIR', 'exports'),
            }
        }

        ConfigurationManager._validate_configuration(config)

        logger.info("✅ Configuration loaded successfully")
        return config

    @staticmethod
    def _validate_configuration(config: Dict[str, Any]):
        """Validate that required configuration is present."""
        errors = []

        if config['data']['load_on_startup'] and not config['data']['initial_data_path']:
            errors.append("QC_DATA_PATH is required when QC_LOAD_ON_STARTUP is true")

        port = config['server']['port']
        if not 0 < port < 65536:
            errors.append(f"DASHBOARD_PORT must be between 1 and 65535, got {port}")

        if config['logging']['level'] not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            errors.append(f"LOG_LEVEL {config['logging']['level']} is not a valid logging level")

        if errors:
            error_msg = "Configuration validation failed:\n" + \
                "\n".join(f"  - {error}" for error in errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

    @staticmethod
    def setup_logging(config: Dict[str, Any]):
        """Setup logging configuration."""
        log_level = getattr(logging, config['logging']['level'], logging.INFO)
        handlers = [logging.StreamHandler()]
        if config['logging']['file']:
            handlers.append(logging.FileHandler(config['logging']['file']))

        logging.basicConfig(
            level=log_level,
            format=config['logging']['format'],
            handlers=handlers,
            force=True
        )

        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
        logging.getLogger('multipart').setLevel(logging.WARNING)

        logger.info(
            f"Logging configured at {config['logging']['level']} level")

    @staticmethod
    def get_environment_info() -> Dict[str, Any]:
        """Get information about the current environment."""
        return {
            'python_version': sys.version,
            'platform': os.name,
            'working_directory': os.getcwd(),
            'environment_variables': {
                key: '***' if 'key' in key.lower() or 'secret' in key.lower() or 'password' in key.lower()
                else value
                for key, value in os.environ.items()
                if key.startswith(('QC_', 'DASHBOARD_', 'LOG_', 'EXPORT_'))
            }
        }

    @staticmethod
    def create_sample_env_file(filepath: str = '.env.sample'):
        """Create a sample environment file with all configuration options."""
        sample_content = '''# Data Configuration
QC_DATA_PATH=data/jobs.csv
QC_LOAD_ON_STARTUP=true
QC_INITIAL_BATCH_NAME=Initial Data

# User Attribution
QC_DEFAULT_USER=Current User
QC_SYSTEM_USER=System

# Dashboard Server
DASHBOARD_HOST=0.0.0.0
DASHBOARD_PORT=8000

# Logging Configuration
LOG_LEVEL=INFO
LOG_FORMAT=%(asctime)s - %(name)s - %(levelname)s - %(message)s
LOG_FILE=

# Output Configuration
EXPORT_DIR=exports
'''

        Path(filepath).write_text(sample_content)

        logger.info(f"Sample environment file created: {filepath}")
