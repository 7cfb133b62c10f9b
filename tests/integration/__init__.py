"""
Integration tests for the QC dashboard.

Tests the API and end-to-end import workflows.
"""
