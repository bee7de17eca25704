"""
Fixed constants of the allocation algorithm.
"""

# "now" is rounded up to the next boundary of this many minutes
START_ROUNDING_MINUTES = 15

# Saturday and Sunday in datetime.weekday()
WEEKEND_DAYS = (5, 6)
