"""
Admin / observability endpoints
===============================

GET /api/v1/admin/available-hosts -- host rides currently open for matching
GET /api/v1/admin/health          -- simple health check
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import HealthResponse, RideResponse
from src.infrastructure.repositories import RideRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/available-hosts",
    response_model=list[RideResponse],
    summary="List host rides open for matching, oldest first",
)
@limiter.limit("100/minute")
async def get_available_hosts(
    request: Request,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    return await RideRepository(db).get_available_hosts(limit=limit)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
