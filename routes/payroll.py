from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from modules.rota.errors import RotaError
from routes.rota import rota_http_error
from services.payroll_service import PayrollService

router = APIRouter(prefix="/api/payroll", tags=["payroll"])


@router.get("/{staff_id}/forecast")
async def get_pay_forecast(
    staff_id: str,
    as_of: Optional[date] = Query(default=None),
):
    """
    Projected pay for the next twelve months.
    Empty when the staff member has no base salary on file.
    """
    service = PayrollService()

    try:
        months = await service.get_forecast(staff_id, as_of or date.today())
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to forecast pay: {str(e)}"
        )

    return {
        "success": True,
        "staff_id": staff_id,
        "months": [m.model_dump(mode="json") for m in months]
    }
