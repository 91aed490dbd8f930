"""FastAPI dependency injection providers for shared services.

Services are lazily instantiated and cached with @lru_cache.

Usage in routes:
    from billing_api.dependencies import get_refund_service

    @router.post("/refund")
    def create_refund(
        refunds: RefundService = Depends(get_refund_service),
    ):
        ...

Service Dependency Graph:
    StripeService (singleton via get_stripe_service)
        ├── WebhookHandler
        └── RefundService

Testing:
    Override providers with app.dependency_overrides, or call
    reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from billing.services.refund_service import RefundService
from billing.services.ssm_service import get_ssm_service
from billing.services.stripe_service import StripeService, get_stripe_service
from billing.services.webhook_handler import WebhookHandler


def get_stripe() -> StripeService:
    """Get the shared StripeService instance."""
    return get_stripe_service()


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    """Get cached WebhookHandler backed by the shared StripeService."""
    return WebhookHandler(stripe_service=get_stripe_service())


@lru_cache
def get_refund_service() -> RefundService:
    """Get cached RefundService backed by the shared StripeService."""
    return RefundService(stripe_service=get_stripe_service())


def reset_services() -> None:
    """Clear all cached service instances, including the Stripe and SSM singletons."""
    get_webhook_handler.cache_clear()
    get_refund_service.cache_clear()
    get_stripe_service.cache_clear()
    get_ssm_service.cache_clear()
