"""FastAPI application for the GlowUp billing backend."""
