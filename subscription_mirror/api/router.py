"""Router that serves every route with and without a trailing slash."""

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.types import DecoratedCallable


class TrailingSlashRouter(APIRouter):
    """Registers each endpoint for both `/path` and `/path/`.

    Stripe posts webhooks to the exact URL configured in the dashboard, so the slash variant
    must be served directly instead of through a redirect, which Stripe does not follow for
    POST requests. Only the variant without the slash appears in the OpenAPI schema.

    Examples:
        @router.get("") - responds to both the naked prefix and the prefix with a slash

        @router.post("/change-plan/") - listed as /change-plan, responds to both
            /change-plan and /change-plan/
    """

    def api_route(
        self, path: str, *, include_in_schema: bool = True, **kwargs: Any
    ) -> Callable[[DecoratedCallable], DecoratedCallable]:
        """Register the slash and non-slash versions of a route.

        Args:
            path (str): The path for the endpoint
            include_in_schema (bool): Whether to include the route in the OpenAPI schema
            **kwargs: Additional arguments to pass to the parent api_route method

        Returns:
            Callable[[DecoratedCallable], DecoratedCallable]: The registering decorator.
        """
        path = path.rstrip("/")

        add_path = super().api_route(path, include_in_schema=include_in_schema, **kwargs)
        add_slash_path = super().api_route(path + "/", include_in_schema=False, **kwargs)

        def decorator(func: DecoratedCallable) -> DecoratedCallable:
            add_slash_path(func)
            return add_path(func)

        return decorator
