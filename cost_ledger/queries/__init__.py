"""Ledger query package."""

from cost_ledger.queries.executor import LedgerQueryExecutor, QueryExecutionError

__all__ = ["LedgerQueryExecutor", "QueryExecutionError"]
