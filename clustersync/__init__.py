"""Continuous replication of an index between two search clusters."""

__version__ = '0.1.0'
