"""HTTP API for reports and migrations."""
