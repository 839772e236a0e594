"""
Schemas package initialization.
"""
