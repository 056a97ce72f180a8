"""Row-to-dataclass mapping, name helpers and CQL schema migrations."""

__version__ = "0.1.0"
__all__ = ["camelize", "iterx", "mapper", "migrate"]