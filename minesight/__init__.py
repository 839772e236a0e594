"""
MineSight - mining-safety video violation analysis.
"""

__version__ = "1.0.0"
