"""Routes package for FastAPI endpoints.

This package contains all API route modules for the SafeHaven survey service.
"""

from safehaven.routes import health, responses, surveys

__all__ = ["health", "responses", "surveys"]
