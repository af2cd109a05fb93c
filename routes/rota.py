from datetime import date, timedelta
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query, status

from models.patterns import ExceptionCreate, PatternCreate, PatternEnd
from models.shifts import TimelineResponse
from modules.rota.errors import RotaError
from services.patterns_service import PatternsService
from services.rota_service import RotaService

router = APIRouter(prefix="/api/rota", tags=["rota"])

MAX_WINDOW_DAYS = 366


def _window(start_date: Optional[date], end_date: Optional[date]):
    # Default to current week (Mon-Sun)
    if not start_date:
        today = date.today()
        start_date = today - timedelta(days=today.weekday())
    if not end_date:
        end_date = start_date + timedelta(days=6)

    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date"
        )
    if (end_date - start_date).days >= MAX_WINDOW_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Window may span at most {MAX_WINDOW_DAYS} days"
        )
    return start_date, end_date


def rota_http_error(e: RotaError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/timeline", response_model=TimelineResponse)
async def get_timeline(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    group_by: Literal["staff", "client"] = Query(default="staff"),
    include_suppressed: bool = Query(default=False),
):
    """
    Resolved, packed timeline for a window.
    Defaults to current week if no dates provided.
    """
    start_date, end_date = _window(start_date, end_date)
    service = RotaService()

    try:
        return await service.get_timeline(start_date, end_date, group_by, include_suppressed)
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build timeline: {str(e)}"
        )


@router.get("/conflicts")
async def get_conflicts(
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
):
    """Leave-suppressed and pending-leave days that need cover"""
    start_date, end_date = _window(start_date, end_date)
    service = RotaService()

    try:
        conflicts = await service.get_conflicts(start_date, end_date)
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load conflicts: {str(e)}"
        )

    return {
        "success": True,
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "conflicts": conflicts,
        "needs_cover": sum(1 for c in conflicts if c["needs_cover"] or c["pending_leave"]),
    }


@router.post("/patterns", status_code=status.HTTP_201_CREATED)
async def create_pattern(pattern: PatternCreate):
    """Create a recurring pattern"""
    service = PatternsService()

    try:
        result = await service.create_pattern(pattern)
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create pattern: {str(e)}"
        )

    return {
        "success": True,
        "pattern": result,
        "message": "Pattern created"
    }


@router.patch("/patterns/{pattern_id}/end")
async def end_pattern(pattern_id: str, body: PatternEnd):
    """End a pattern from the given date onwards"""
    service = PatternsService()

    try:
        result = await service.end_pattern(pattern_id, body.end_date)
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to end pattern: {str(e)}"
        )

    return {
        "success": True,
        "pattern": result
    }


@router.delete("/patterns/{pattern_id}")
async def delete_pattern(pattern_id: str):
    """Remove a pattern and every occurrence it produces"""
    service = PatternsService()

    try:
        await service.delete_pattern(pattern_id)
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete pattern: {str(e)}"
        )

    return {
        "success": True,
        "message": "Pattern deleted"
    }


@router.post("/patterns/{pattern_id}/exceptions", status_code=status.HTTP_201_CREATED)
async def add_pattern_exception(pattern_id: str, body: ExceptionCreate):
    """Delete a single occurrence of a pattern"""
    service = PatternsService()

    try:
        result = await service.add_exception(pattern_id, body.exception_date)
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to add exception: {str(e)}"
        )

    return {
        "success": True,
        "exception": result
    }
