"""API module - FastAPI application, routes and dependency wiring."""
