"""Field Service lifecycle engine.

Moves quotes through their status lifecycle, derives jobs and visits from
approved quotes, drives visit status transitions, and guards the visit photo
quota. All status changes go through conditional (compare-and-swap) writes.
"""

__version__ = "0.1.0"
