"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_routes_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.google_routes_client import check_health as routes_health_check
    return routes_health_check


@router.get("/health/routes-api", status_code=status.HTTP_200_OK)
def health_routes_api() -> dict:
    """Check whether the Google Routes API is configured."""
    try:
        routes_health_check = _get_routes_health_check()
        return {"service": "google-routes", "configured": routes_health_check()}
    except Exception as e:
        return {"service": "google-routes", "configured": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and customer table access."""
    from ...db.supabase import get_supabase_client
    from ...persistence.database import CUSTOMER_TABLE

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set DESPACHOS_SUPABASE_URL and DESPACHOS_SUPABASE_KEY environment variables.",
        }

    try:
        result = supabase.table(CUSTOMER_TABLE).select("code_customer", count="exact").limit(1).execute()
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }

    return {
        "configured": True,
        "connected": True,
        "customers_count": result.count,
        "message": "Database connected.",
    }
