"""
Tasks API package.

A FastAPI backend for a minimal task manager: CRUD and bulk operations over
a SQLite `tasks` table, plus a stateless demo variant.
"""

__version__ = "1.0.0"
