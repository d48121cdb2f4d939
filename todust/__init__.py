"""todust: todo entries grouped into projects, backed by SQLite."""

__version__ = "0.1.0"
