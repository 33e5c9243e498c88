"""
# MongoDB Database Manager

This module owns the **single MongoDB connection pool** shared by every WebNest service.
It is built on **Motor** (the async MongoDB driver) and exposes a `DatabaseManager` singleton,
`db_manager`, which services receive through their constructors.

## Responsibilities

- **Connection lifecycle**: `connect()` with exponential backoff, `disconnect()` on shutdown.
- **Health**: `health_check()` pings the server for the `/health` endpoint.
- **Collections**: `get_collection()` hands out Motor collections, failing fast when not connected.
- **Indexes**: `create_indexes()` ensures the unique, TTL and compound indexes the API relies on.
- **Transactions**: `run_in_transaction()` runs a compound write inside a multi-document
  transaction when the deployment supports one (replica set or mongos).

## Collections

| Collection | Purpose |
|------------|---------|
| `admins` | Back office accounts with OTP state and login history |
| `users` | Clients commissioning websites |
| `developers` | Developers building them |
| `projects` | Commissioned projects |
| `project_assignments` | Developer assignments per project |
| `refresh_tokens` | Server-side refresh tokens (TTL on `expires_at`) |
| `project_deadlines` | Deadlines with embedded reminder sub-documents |
| `client_notifications` | In-app notifications |
| `earnings` / `payments` | Developer earnings ledger and payout requests |
| `reviews` / `support_tickets` / `activity_logs` | Read by analytics |

## Usage

```python
from webnest.database import db_manager

await db_manager.connect()
await db_manager.create_indexes()
admins = db_manager.get_collection("admins")
```
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from webnest.config import settings
from webnest.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

T = TypeVar("T")

MAX_POOL_SIZE = 50
MIN_POOL_SIZE = 5


class DatabaseManager:
    """
    Manages MongoDB connections, collections, and database operations.

    **Lifecycle:**
    1. **Instantiation**: `client` and `database` start as `None`
    2. **Connection**: `connect()` establishes the pool and detects transaction support
    3. **Operations**: `get_collection()` for queries, `run_in_transaction()` for compound writes
    4. **Shutdown**: `disconnect()` closes the pool

    Attributes:
        client (`Optional[AsyncIOMotorClient]`): Motor client, `None` until connected.
        database (`Optional[AsyncIOMotorDatabase]`): Selected database, `None` until connected.
        transactions_supported (`Optional[bool]`): Whether multi-document transactions are available.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3
        # Set after connect(); True for replica sets and mongos
        self.transactions_supported: Optional[bool] = None

    async def connect(self):
        """
        Establish connection to MongoDB with exponential backoff retry logic.

        Up to three attempts are made with 1s and 2s delays between them. After a successful
        ping, a `hello` command is used to detect whether the deployment supports transactions.

        Raises:
            `ServerSelectionTimeoutError`: If MongoDB is unreachable after all retry attempts.
            `ConnectionFailure`: If authentication fails or the connection is refused.
            `ConnectionError`: For lower-level network errors.
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)

                if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
                    connection_string = (
                        f"mongodb://{settings.MONGODB_USERNAME}:"
                        f"{settings.MONGODB_PASSWORD.get_secret_value()}@"
                        f"{settings.MONGODB_URL.replace('mongodb://', '')}"
                    )
                    db_logger.debug("Using authenticated connection to MongoDB")
                else:
                    connection_string = settings.MONGODB_URL
                    db_logger.debug("Using unauthenticated connection to MongoDB")

                db_logger.info(
                    "MongoDB connection config - Database: %s, MaxPool: %d, MinPool: %d, ServerTimeout: %dms, ConnTimeout: %dms",
                    settings.MONGODB_DATABASE,
                    MAX_POOL_SIZE,
                    MIN_POOL_SIZE,
                    settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    settings.MONGODB_CONNECTION_TIMEOUT,
                )

                self.client = AsyncIOMotorClient(
                    connection_string,
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=MAX_POOL_SIZE,
                    minPoolSize=MIN_POOL_SIZE,
                    tz_aware=True,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                try:
                    hello = await self.client.admin.command({"hello": 1})
                    self.transactions_supported = bool(hello.get("setName") or hello.get("msg") == "isdbgrid")
                except Exception as e:
                    db_logger.warning("Could not detect transaction support, assuming none: %s", e)
                    self.transactions_supported = False

                total_duration = time.time() - start_time
                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)", total_duration, ping_duration
                )
                db_logger.info(
                    "Successfully connected to MongoDB database: %s (transactions: %s)",
                    settings.MONGODB_DATABASE,
                    self.transactions_supported,
                )
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                attempt_duration = time.time() - attempt_start
                perf_logger.warning("Connection attempt %d failed after %.3fs", attempt + 1, attempt_duration)
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise
                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)
            except (ConnectionError, TimeoutError) as e:
                db_logger.error("Connection error connecting to MongoDB: %s", e)
                raise

    async def disconnect(self):
        """Close the Motor client and release every pooled connection."""
        start_time = time.time()
        db_logger.info("Starting MongoDB disconnection process")
        if self.client is None:
            db_logger.warning("Disconnect called but no active MongoDB connection found")
            return

        self.client.close()
        self.client = None
        self.database = None
        perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
        db_logger.info("Successfully disconnected from MongoDB")

    async def health_check(self) -> bool:
        """
        Verify MongoDB connection health with a lightweight ping.

        Returns:
            `bool`: `True` if the database responds, `False` otherwise. Never raises.
        """
        start_time = time.time()
        try:
            if self.client is None:
                health_logger.warning("Health check failed: No database client available")
                return False
            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True
        except (ServerSelectionTimeoutError, ConnectionFailure) as e:
            health_logger.error("Database health check failed: %s", e)
            return False
        except Exception as e:
            health_logger.error("Unexpected error during health check: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Retrieve a MongoDB collection by name from the connected database.

        Args:
            collection_name (`str`): Collection name, e.g. `"admins"` or `"project_deadlines"`.

        Returns:
            `AsyncIOMotorCollection`: Motor collection bound to the shared pool.

        Raises:
            `ConnectionError`: If `connect()` has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")
        return self.database[collection_name]

    async def run_in_transaction(self, callback: Callable[[Any], Awaitable[T]]) -> T:
        """
        Run `callback(session)` atomically when the deployment supports transactions.

        On a standalone server the callback is invoked with `session=None` and callers are
        expected to compensate for partial failure themselves.

        Args:
            callback: Coroutine function receiving a client session (or `None`).

        Returns:
            Whatever the callback returns.
        """
        if not self.transactions_supported or self.client is None:
            db_logger.debug("Transactions unavailable, running compound write without session")
            return await callback(None)

        async with await self.client.start_session() as session:
            async with session.start_transaction():
                return await callback(session)

    async def create_indexes(self):
        """Create the indexes WebNest queries rely on."""
        start_time = time.time()
        db_logger.info("Starting database index creation process")

        try:
            for name in ("admins", "users", "developers"):
                collection = self.get_collection(name)
                await self._create_index_if_not_exists(collection, "email", {"unique": True})
                await self._create_index_if_not_exists(collection, "created_at", {})

            refresh_tokens = self.get_collection("refresh_tokens")
            await self._create_index_if_not_exists(refresh_tokens, "token", {"unique": True})
            await self._create_index_if_not_exists(refresh_tokens, [("user_id", ASCENDING), ("is_active", ASCENDING)], {})
            await self._create_index_if_not_exists(refresh_tokens, "expires_at", {"expireAfterSeconds": 0})

            deadlines = self.get_collection("project_deadlines")
            await self._create_index_if_not_exists(
                deadlines, [("deadline_date", ASCENDING), ("is_completed", ASCENDING)], {}
            )
            await self._create_index_if_not_exists(
                deadlines, [("assigned_to", ASCENDING), ("assignee_type", ASCENDING)], {}
            )
            await self._create_index_if_not_exists(deadlines, "project_id", {})

            notifications = self.get_collection("client_notifications")
            await self._create_index_if_not_exists(
                notifications, [("user_id", ASCENDING), ("is_read", ASCENDING), ("created_at", DESCENDING)], {}
            )
            await self._create_index_if_not_exists(notifications, "dedupe_key", {"unique": True, "sparse": True})

            projects = self.get_collection("projects")
            await self._create_index_if_not_exists(projects, [("client_id", ASCENDING), ("status", ASCENDING)], {})
            await self._create_index_if_not_exists(projects, "assigned_developer", {})

            assignments = self.get_collection("project_assignments")
            await self._create_index_if_not_exists(
                assignments, [("developer_id", ASCENDING), ("status", ASCENDING)], {}
            )
            await self._create_index_if_not_exists(assignments, "project_id", {})

            earnings = self.get_collection("earnings")
            await self._create_index_if_not_exists(earnings, [("developer_id", ASCENDING), ("status", ASCENDING)], {})
            await self._create_index_if_not_exists(earnings, "earned_at", {})

            payments = self.get_collection("payments")
            await self._create_index_if_not_exists(
                payments, [("developer_id", ASCENDING), ("created_at", DESCENDING)], {}
            )

            activity_logs = self.get_collection("activity_logs")
            await self._create_index_if_not_exists(activity_logs, [("user_id", ASCENDING), ("created_at", DESCENDING)], {})

            perf_logger.info("Database index creation completed successfully in %.3fs", time.time() - start_time)
            db_logger.info("Database indexes created successfully")

        except (ConnectionError, TimeoutError) as e:
            perf_logger.error("Database index creation failed after %.3fs", time.time() - start_time)
            db_logger.error("Failed to create database indexes: %s", e)
            raise

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any]
    ):
        """Create an index if it doesn't already exist"""
        start_time = time.time()
        try:
            await collection.create_index(field_spec, **options)
            perf_logger.debug("Created/ensured index '%s' in %.3fs", field_spec, time.time() - start_time)
        except Exception as e:
            perf_logger.warning("Failed to create/ensure index '%s' after %.3fs", field_spec, time.time() - start_time)
            db_logger.warning("Could not create/ensure index '%s': %s", field_spec, e)


db_manager = DatabaseManager()
