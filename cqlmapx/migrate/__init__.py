"""Apply ordered CQL migration files, with callbacks and checksum tracking."""

__all__ = ["callback", "checksum", "migrate"]