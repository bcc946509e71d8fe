"""Reporting: polling payload and CSV/JSON export."""
