"""
FastAPI verification service.

Provides REST API for crowd verification with:
- POST /verify - Submit a plan acceptance report
- POST /verify/{report_id}/vote - Vote on a report
- GET /verify/{npi}/{plan_id} - Provider/plan aggregate
- POST /admin/* - TTL lifecycle jobs
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
