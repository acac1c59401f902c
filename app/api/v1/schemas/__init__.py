"""
Pydantic schemas for API request/response models
"""

from app.api.v1.schemas.instance import Comment, SharedLookboardInstance
from app.api.v1.schemas.look import Look, Lookboard, LookOverride

__all__ = ["Comment", "Look", "Lookboard", "LookOverride", "SharedLookboardInstance"]
