"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .videos import DocumentStoreError, SnowflakeConfig, VideoDocumentRepository

__all__ = ["DocumentStoreError", "SnowflakeConfig", "VideoDocumentRepository"]
