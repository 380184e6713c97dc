"""
Intent Routing Routes.

Endpoints:
- POST /router/route: Route one user turn to a sub-agent

The routing state is owned by the client: send back ``agent_name`` as
``current_agent`` and ``turn_number`` from the previous response.
Routing failures are reported inside the response body with HTTP 200 so
the clarification prompt always reaches the user.
"""
from fastapi import APIRouter, Depends

from twinlink.api.dependencies import get_intent_router
from twinlink.core.logging_config import get_logger
from twinlink.models.api import RouteRequest, RouteResponse
from twinlink.routing.router import IntentRouter

logger = get_logger(__name__)
router = APIRouter(prefix="/router", tags=["Intent Routing"])


@router.post("/route", response_model=RouteResponse, summary="Route a user turn")
async def route(
    request: RouteRequest,
    intent_router: IntentRouter = Depends(get_intent_router)
) -> RouteResponse:
    result = await intent_router.route(
        request.twin_id,
        request.message,
        current_agent=request.current_agent,
        turn_number=request.turn_number,
    )
    return RouteResponse(
        success=result.success,
        status=result.status,
        twin_id=result.twin_id,
        agent_name=result.agent_name,
        response_prompt=result.response_prompt,
        turn_number=result.turn_number,
        confidence=result.confidence,
        reason=result.reason,
        error=result.error.value if result.error else None,
        error_message=result.error_message,
    )
