"""Tests for the PRTG data source."""
