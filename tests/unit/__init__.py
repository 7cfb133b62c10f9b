"""
Unit tests for the QC dashboard.

Tests individual components in isolation.
"""
