"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .messages import MessageRepository, SnowflakeConfig

__all__ = ["MessageRepository", "SnowflakeConfig"]
