from __future__ import annotations


# Domain-level error the API layer can surface directly (HTTP 400)
class DomainError(Exception):
    status_code = 400


class NotFoundError(DomainError):
    """A top-level reference (summary, batch, sale) does not resolve."""

    status_code = 404


class SummaryReconciledError(DomainError):
    """Write attempted against a daily summary that is already reconciled."""

    status_code = 409
