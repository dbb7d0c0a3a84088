"""
SayWith Manager - create and edit shareable SayWith messages.

This package contains the complete application:
- core: Framework-agnostic message workflows
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
