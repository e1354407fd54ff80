"""
Deployment Metrics Service
Aggregates deployment facts stored in DuckDB and serves team and daily metrics.
"""

__version__ = '1.0.0'
