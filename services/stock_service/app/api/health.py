import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_session

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def healthcheck(session: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Report ``ok`` when the ledger database answers a trivial query."""

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        _LOGGER.exception("Health check could not reach the database")
        await session.rollback()
        return JSONResponse({"status": "unavailable"}, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return JSONResponse({"status": "ok"})
