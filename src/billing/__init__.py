"""GlowUp billing: Stripe checkout, webhook ingestion and refunds."""

__version__ = "0.1.0"
