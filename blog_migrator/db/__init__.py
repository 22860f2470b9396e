"""DuckDB ledger of migration jobs, items, assets, post mappings and links."""

from .ledger import LedgerStore

__all__ = ["LedgerStore"]
