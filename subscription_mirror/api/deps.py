"""Dependencies that are used in the API endpoints."""

from fastapi import Request

from subscription_mirror.core.subscription_service import SubscriptionService


async def get_subscription_service(request: Request) -> SubscriptionService:
    """Return the subscription service built at application startup.

    Tests override this dependency to inject a service with fake adapters.
    """
    return request.app.state.subscription_service
