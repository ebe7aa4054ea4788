"""
Unit query pipeline.
"""

from .service import UnitQueryResult, UnitQueryService

__all__ = ["UnitQueryResult", "UnitQueryService"]
