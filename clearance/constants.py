"""
Default constants for the clearance calculator.
"""

# Business days a commission waits before it can be paid out
CLEARANCE_DAYS = 14

# datetime.weekday() values treated as non-business days
WEEKEND_DAYS = frozenset({5, 6})  # Saturday, Sunday
