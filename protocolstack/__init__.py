"""
ProtocolStack backend.

Per-stack daily streaks, grace periods and milestone badges for the
protocol tracker. The streak engine is pure; persistence and HTTP live
around it.
"""

__version__ = "0.1.0"
