"""HTTP API for the wage ledger."""

from wage_ledger.api.app import create_app

__all__ = ["create_app"]
