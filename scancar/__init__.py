"""Vehicle listing aggregator with cached snapshots and on-demand details."""

__version__ = "1.0.0"
