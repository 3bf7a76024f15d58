"""FastAPI application for the ticket checkout service."""
