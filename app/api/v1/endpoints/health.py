"""Health check endpoint for monitoring and orchestration."""
from fastapi import APIRouter, Request, Response, status
from app.core.constants import GeneralErrorDetails
from app.schemas.response import ApiResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=ApiResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
    description="Report whether the credential store is reachable"
)
async def health_check(request: Request, response: Response):
    """
    Returns 200 when the credential store answers and 503 otherwise.

    The memory store is always reachable; the PostgreSQL store is checked with
    ``SELECT 1`` on a pooled connection.
    """
    state = request.app.state
    store = state.settings.CREDENTIAL_STORE

    if store == "memory":
        healthy = True
    else:
        db_manager = getattr(state, "db_manager", None)
        healthy = db_manager is not None and await db_manager.check_connection()

    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ApiResponse(
            success=False,
            message=GeneralErrorDetails.SERVICE_UNAVAILABLE,
            data={"status": "unhealthy", "store": store}
        )

    return ApiResponse(
        success=True,
        message="System is healthy",
        data={"status": "healthy", "store": store}
    )
