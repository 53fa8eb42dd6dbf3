"""HTTP API for the payroll batch engine."""

from payroll_batch.api.app import create_app

__all__ = ["create_app"]
