"""Heuristic batch schedulers for memory-limited NPU clusters, with a scoring report."""

__version__ = "0.1.0"