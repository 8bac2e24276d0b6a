"""
FounderFlow

Single-line task capture, a spotlight of Now/Next/Today queues,
and timed focus sessions.
"""

__version__ = "0.1.0"
