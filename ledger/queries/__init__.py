"""Monthly summary package."""

from ledger.queries.summary import MonthlySummaryAggregator, build_summary

__all__ = ["MonthlySummaryAggregator", "build_summary"]
