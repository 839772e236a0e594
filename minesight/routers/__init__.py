"""
Routers package initialization.
"""

from minesight.routers import videos, violations, training_assets

__all__ = ["videos", "violations", "training_assets"]
