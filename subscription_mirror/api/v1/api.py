"""API routes for the FastAPI application."""

from subscription_mirror.api.router import TrailingSlashRouter
from subscription_mirror.api.v1.endpoints import health, subscriptions, webhooks

# Use our custom router that handles trailing slashes
api_router = TrailingSlashRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
