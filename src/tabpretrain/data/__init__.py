"""Row-to-tensor resolution for tabular frames."""

from .resolver import ResolvedBatch, TabularResolver, resolve_data

__all__ = ["ResolvedBatch", "TabularResolver", "resolve_data"]
