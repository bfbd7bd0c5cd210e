"""Daily-wage payroll and customer receivables ledger."""

__version__ = "1.0.0"
