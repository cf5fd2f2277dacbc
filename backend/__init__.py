"""
Backend package for the Super Dashboard API.

Provides a FastAPI application that serves betting and stock data either
from local mock files or from Postgres, with Redis-backed refresh tokens.
"""

__version__ = "1.0.0"
