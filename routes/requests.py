from fastapi import APIRouter, HTTPException, status

from models.requests import RequestReview
from modules.rota.errors import RotaError, StaleApprovalReplayError
from routes.rota import rota_http_error
from services.requests_service import RequestsService

router = APIRouter(prefix="/api/requests", tags=["requests"])


@router.post("/{request_id}/review")
async def review_request(request_id: str, review: RequestReview):
    """
    Approve or reject a pending staff request.

    Approving leave creates the matching absence record; approving shift cover
    hands the covered staff member's shifts in range to the covering one.
    Replaying an approval is a no-op.
    """
    service = RequestsService()

    try:
        result = await service.review_request(request_id, review)
    except StaleApprovalReplayError as e:
        return {
            "success": True,
            "no_op": True,
            "request_id": request_id,
            "message": e.message
        }
    except RotaError as e:
        raise rota_http_error(e)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to review request: {str(e)}"
        )

    return {
        "success": True,
        "no_op": False,
        **result
    }
