"""Utility modules.

Object storage for case videos and other shared helpers.
"""

from app.utils.storage import StorageError, VideoAssetNotFoundError, VideoAssetStore

__all__ = [
    "StorageError",
    "VideoAssetNotFoundError",
    "VideoAssetStore",
]
