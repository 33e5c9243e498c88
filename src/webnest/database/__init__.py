"""
# Database Package

Persistence layer for WebNest, built on **Motor**.

- **`manager`**: the `DatabaseManager` class and its module-level singleton `db_manager`,
  shared by every service so the application holds exactly one connection pool.

Services never reach for this singleton themselves. They receive a database handle in their
constructor and FastAPI dependencies wire `db_manager` in at the edge.
"""

from webnest.database.manager import DatabaseManager, db_manager

__all__ = ["DatabaseManager", "db_manager"]
