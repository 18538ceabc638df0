"""plugkit - declarative property schemas for hub plugins."""

__version__ = "0.3.0"
