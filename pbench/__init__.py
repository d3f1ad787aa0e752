"""Presto benchmark helpers: decimal rounding, DDL generation and JSON logging."""

__version__ = "0.1.0"