"""
# WebNest - Main Application Module

Entry point and lifecycle orchestrator for the WebNest marketplace API: one FastAPI app
serving the admin back office, the client portal and the developer portal over a shared
MongoDB database.

## Lifespan

**Startup:**
1. **Database**: connect to MongoDB (with retries) and create indexes
2. **Bootstrap**: create the first owner admin when `BOOTSTRAP_OWNER_EMAIL` and
   `BOOTSTRAP_OWNER_PASSWORD` are set and no owner exists yet
3. **Scheduler**: start the hourly deadline reminder tick and the daily refresh-token cleanup
   when `SCHEDULER_ENABLED` is true

**Shutdown:** stop the scheduler, close Redis, disconnect from MongoDB.

## Middleware

- `CORSMiddleware` with origins from `CORS_ORIGINS`
- `RequestLoggingMiddleware` for per-request timing

## Routers

| Prefix | Audience |
|--------|----------|
| `/api/admin/auth` | Admin login with OTP, profile, admin creation |
| `/api/admin/users`, `/api/admin/developers`, `/api/admin/projects` | Back office CRUD |
| `/api/admin/analytics` | Aggregated reporting |
| `/api/auth` | Refresh and logout for every principal kind |
| `/api/client` | Client accounts, notifications and deadlines |
| `/api/developer` | Developer accounts, earnings, notifications and deadlines |
| `/health`, `/metrics` | Health probe and Prometheus metrics |

## Running

```bash
uvicorn webnest.main:app --reload --host 0.0.0.0 --port 5000
```
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
import uvicorn

from webnest.config import settings
from webnest.database import db_manager
from webnest.errors import register_exception_handlers
from webnest.managers.logging_manager import get_logger
from webnest.managers.redis_manager import redis_manager
from webnest.routes import (
    admin_auth,
    admin_developers,
    admin_projects,
    admin_users,
    analytics,
    auth,
    client,
    developer,
    health,
)
from webnest.services.admin_auth_service import AdminAuthService
from webnest.services.email_service import EmailService
from webnest.services.notification_service import NotificationService
from webnest.services.otp_service import OTPService
from webnest.services.reminder_scheduler import ReminderDispatcher, ReminderScheduler
from webnest.services.token_service import TokenService
from webnest.utils.logging_utils import RequestLoggingMiddleware, log_application_lifecycle, log_error_with_context

logger = get_logger(prefix="[MAIN]")


async def bootstrap_owner() -> None:
    """Create the first owner admin from settings, if configured and missing."""
    if not settings.BOOTSTRAP_OWNER_EMAIL or not settings.BOOTSTRAP_OWNER_PASSWORD:
        return
    email_service = EmailService()
    service = AdminAuthService(db_manager, OTPService(db_manager, email_service), TokenService(db_manager))
    created = await service.ensure_owner(
        settings.BOOTSTRAP_OWNER_NAME,
        settings.BOOTSTRAP_OWNER_EMAIL,
        settings.BOOTSTRAP_OWNER_PASSWORD.get_secret_value(),
    )
    if created:
        log_application_lifecycle("owner_bootstrapped", {"email": settings.BOOTSTRAP_OWNER_EMAIL})


def build_scheduler() -> ReminderScheduler:
    dispatcher = ReminderDispatcher(db_manager, NotificationService(db_manager), EmailService())
    return ReminderScheduler(dispatcher, TokenService(db_manager), redis_manager)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Connect to MongoDB, bootstrap the owner account and start the scheduler, then undo all
    of it on shutdown.

    Raises:
        Exception: If the database cannot be reached; the app does not start without it.
    """
    startup_start_time = time.time()
    log_application_lifecycle(
        "startup_initiated",
        {
            "app_name": settings.APP_NAME,
            "environment": "production" if settings.is_production else "development",
            "debug_mode": settings.DEBUG,
        },
    )

    try:
        await db_manager.connect()
        log_application_lifecycle("database_connected", {"database_name": settings.MONGODB_DATABASE})
        await db_manager.create_indexes()
        log_application_lifecycle("database_indexes_ready")
    except Exception as e:
        log_error_with_context(e, {"operation": "database_startup"})
        raise

    try:
        await bootstrap_owner()
    except Exception as e:
        log_error_with_context(e, {"operation": "owner_bootstrap"})

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = build_scheduler()
        scheduler.start()
    _app.state.reminder_scheduler = scheduler

    log_application_lifecycle(
        "startup_completed",
        {
            "startup_duration": f"{time.time() - startup_start_time:.3f}s",
            "scheduler_enabled": scheduler is not None,
            "redis_enabled": redis_manager.enabled,
        },
    )

    yield

    shutdown_start_time = time.time()
    log_application_lifecycle("shutdown_initiated")

    if scheduler is not None:
        scheduler.stop()

    try:
        await redis_manager.close()
    except Exception as e:
        log_error_with_context(e, {"operation": "redis_close"})

    try:
        await db_manager.disconnect()
        log_application_lifecycle("database_disconnected")
    except Exception as e:
        log_error_with_context(e, {"operation": "database_disconnection"})

    log_application_lifecycle(
        "shutdown_completed", {"total_shutdown_duration": f"{time.time() - shutdown_start_time:.3f}s"}
    )


app = FastAPI(
    title=settings.APP_NAME,
    description="Freelance marketplace API for clients, developers and the admin back office.",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

logger.info("Configuring CORS with origins: %s", settings.cors_origins_list)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    max_age=3600,
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

routers_config = [
    ("admin_auth", admin_auth.router, "Admin login, OTP verification and admin management"),
    ("admin_users", admin_users.router, "Admin management of client accounts"),
    ("admin_developers", admin_developers.router, "Admin management of developer accounts"),
    ("admin_projects", admin_projects.router, "Project assignment and status"),
    ("analytics", analytics.router, "Dashboard and reporting aggregations"),
    ("auth", auth.router, "Token refresh and logout"),
    ("client", client.router, "Client accounts"),
    ("client_deadlines", client.deadline_router, "Client deadlines"),
    ("client_notifications", client.notification_router, "Client notifications"),
    ("developer", developer.router, "Developer accounts and earnings"),
    ("developer_deadlines", developer.deadline_router, "Developer deadlines"),
    ("developer_notifications", developer.notification_router, "Developer notifications"),
    ("health", health.router, "Health probe"),
]

included_routers = []
for router_name, router, description in routers_config:
    app.include_router(router)
    included_routers.append(router_name)
    logger.info("Included %s router: %s", router_name, description)

log_application_lifecycle("routers_configured", {"total_routers": len(routers_config), "routers": included_routers})

try:
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
    )
    instrumentator.instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")
    log_application_lifecycle("prometheus_configured", {"metrics_endpoint": "/metrics"})
except Exception as e:
    log_error_with_context(e, {"operation": "prometheus_setup"})
    logger.error("Failed to configure Prometheus metrics: %s", e)


def run():
    uvicorn.run("webnest.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info")


if __name__ == "__main__":
    run()
