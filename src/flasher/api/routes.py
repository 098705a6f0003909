"""API route handlers for the flash session."""

from fastapi import APIRouter, BackgroundTasks
from fastapi.responses import JSONResponse

from flasher.api.models import ErrorResponse, ProgressResponse, SuccessResponse
from flasher.models.status import ErrorCode
from flasher.services.state_manager import SessionState

router = APIRouter(prefix="/api/v1.0")


def _conflict(state: SessionState, msg: str) -> JSONResponse:
    body = ErrorResponse(
        code=409, msg=msg, step=state.step.get(), error=state.error.get()
    )
    return JSONResponse(status_code=200, content=body.model_dump(mode="json"))


@router.get("/progress", response_model=ProgressResponse)
async def get_progress():
    """GET /api/v1.0/progress - Query current session state.

    Response format (healthy):
        {
            "code": 200,
            "msg": "success",
            "data": {
                "step": 5,
                "message": "Flashing boot",
                "progress": 0.42,
                "error": 0,
                "connected": true,
                "serial": "a1b2c3d4",
                "can_continue": false,
                "can_retry": false
            }
        }

    Response format (failed):
        {
            "code": 500,
            "msg": "Flash failed: FLASH_FAILED",
            "data": {"step": 5, "progress": -1, "error": 6, "can_retry": true, ...}
        }
    """
    snapshot = SessionState().snapshot()

    if snapshot.error != ErrorCode.NONE:
        return ProgressResponse(
            code=500, msg=f"Flash failed: {snapshot.error.name}", data=snapshot
        )
    return ProgressResponse(code=200, msg="success", data=snapshot)


@router.post("/continue", response_model=SuccessResponse)
async def post_continue():
    """POST /api/v1.0/continue - Answer the armed continue prompt.

    At READY this starts flashing in the background.

    Returns:
        SuccessResponse if a prompt was armed, code 409 otherwise
    """
    state = SessionState()
    on_continue = state.on_continue.get()
    if on_continue is None:
        return _conflict(state, f"Nothing to continue at {state.step.get().name}")

    on_continue()
    return JSONResponse(
        status_code=200,
        content={"code": 200, "msg": "success", "data": None},
    )


@router.post("/retry", response_model=SuccessResponse)
async def post_retry(background_tasks: BackgroundTasks):
    """POST /api/v1.0/retry - Restart the process after a failure.

    The restart runs after the response has been sent.

    Returns:
        SuccessResponse if retry was armed, code 409 otherwise
    """
    state = SessionState()
    on_retry = state.on_retry.get()
    if on_retry is None:
        return _conflict(state, "Retry is only available after a failure")

    background_tasks.add_task(on_retry)
    return JSONResponse(
        status_code=200,
        content={"code": 200, "msg": "success", "data": None},
    )
