"""API routes package.

Routers are organized by concern:

- webhooks: Stripe event ingestion
- checkout: Checkout session creation
- sessions: Checkout session verification
- refunds: Refund issuance and history

All routers are registered in main.py with /api prefix.
"""

from billing_api.routes.checkout import router as checkout_router
from billing_api.routes.refunds import router as refunds_router
from billing_api.routes.sessions import router as sessions_router
from billing_api.routes.webhooks import router as webhooks_router

__all__ = [
    "checkout_router",
    "refunds_router",
    "sessions_router",
    "webhooks_router",
]
