"""Driver loading, daily sales and returns reconciliation for ice delivery."""

__version__ = "0.3.0"
