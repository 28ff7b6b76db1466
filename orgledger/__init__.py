"""
Hierarchical organization management and donation tracking.
"""
