"""
HTTP routes for Superset Gateway

Endpoints:
- /execute-sql: Execute a guarded SELECT through SQL Lab
- /charts/create: Create an Explore chart and permalink
"""

from .superset import router

__all__ = ["router"]
