"""
Data-access layer.

Usage:
    from unitofwork.repositories import BaseDAO

    class DogDAO(BaseDAO[Dog]):
        def __init__(self):
            super().__init__(Dog)
"""

from .base_dao import BaseDAO

__all__ = ["BaseDAO"]
