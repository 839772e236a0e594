"""
Services package initialization.
"""
