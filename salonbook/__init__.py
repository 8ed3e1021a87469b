"""
SalonBook - salon booking, GCash payment confirmation and walk-in queue tracking.
"""

__version__ = "0.1.0"
