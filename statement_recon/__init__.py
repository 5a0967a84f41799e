"""Bank statement import and reconciliation service."""
