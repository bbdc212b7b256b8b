"""
Civic Hub - civic issue reporting backend.

Posts are classified into civic departments, duplicate reports are merged
into shared issues, and reporters earn points, streaks and badges.
"""

__version__ = "0.1.0"
