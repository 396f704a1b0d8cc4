"""System API: health check."""

from fastapi import APIRouter

from backend.utils.timeutils import utcnow

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/health")
def health_check():
    return {"status": "ok", "timestamp": utcnow().isoformat()}
