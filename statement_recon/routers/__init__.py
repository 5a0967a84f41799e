"""API routers package."""

from statement_recon.routers import reconciliation, statements

__all__ = [
    "reconciliation",
    "statements",
]
