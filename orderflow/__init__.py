"""
                Orderflow

Order lifecycle and real-time notification backend for a restaurant
ordering platform: schedule-gated order intake, server-side pricing,
status state machine and live event fan-out to staff dashboards.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
