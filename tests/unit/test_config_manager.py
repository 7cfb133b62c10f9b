"""
Unit tests for environment-driven configuration.
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from qc_dashboard.core.config_manager import ConfigurationManager


class TestConfigurationManager(unittest.TestCase):
    """Test cases for ConfigurationManager."""

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        config = ConfigurationManager.load_configuration()

        self.assertEqual(config['data']['initial_data_path'], 'data/jobs.csv')
        self.assertTrue(config['data']['load_on_startup'])
        self.assertEqual(config['data']['initial_batch_name'], 'Initial Data')
        self.assertEqual(config['users']['default_user'], 'Current User')
        self.assertEqual(config['users']['system_user'], 'System')
        self.assertEqual(config['server']['port'], 8000)
        self.assertEqual(config['logging']['level'], 'INFO')

    @patch.dict(os.environ, {
        'QC_DATA_PATH': '/srv/qc/jobs.csv',
        'QC_LOAD_ON_STARTUP': 'false',
        'QC_DEFAULT_USER': 'Lead',
        'DASHBOARD_PORT': '9100',
        'LOG_LEVEL': 'debug',
    }, clear=True)
    def test_environment_overrides(self):
        config = ConfigurationManager.load_configuration()

        self.assertEqual(config['data']['initial_data_path'], '/srv/qc/jobs.csv')
        self.assertFalse(config['data']['load_on_startup'])
        self.assertEqual(config['users']['default_user'], 'Lead')
        self.assertEqual(config['server']['port'], 9100)
        self.assertEqual(config['logging']['level'], 'DEBUG')

    @patch.dict(os.environ, {'DASHBOARD_PORT': '70000', 'LOG_LEVEL': 'LOUD'}, clear=True)
    def test_invalid_values_reported_together(self):
        with self.assertRaises(ValueError) as ctx:
            ConfigurationManager.load_configuration()

        message = str(ctx.exception)
        self.assertIn('DASHBOARD_PORT', message)
        self.assertIn('LOG_LEVEL LOUD', message)

    @patch.dict(os.environ, {'QC_DATA_PATH': ''}, clear=True)
    def test_data_path_required_when_loading(self):
        with self.assertRaises(ValueError):
            ConfigurationManager.load_configuration()

    @patch.dict(os.environ, {'QC_DEFAULT_USER': 'Lead', 'OTHER_VAR': 'x'}, clear=True)
    def test_environment_info_lists_dashboard_variables(self):
        info = ConfigurationManager.get_environment_info()
        self.assertEqual(info['environment_variables'], {'QC_DEFAULT_USER': 'Lead'})

    def test_create_sample_env_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / '.env.sample'
            ConfigurationManager.create_sample_env_file(str(path))
            content = path.read_text()

        self.assertIn('QC_DATA_PATH=data/jobs.csv', content)
        self.assertIn('DASHBOARD_PORT=8000', content)


if __name__ == '__main__':
    unittest.main()
