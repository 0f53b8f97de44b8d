"""
Command API routes.

POST /api/command takes one free-text command and returns {"result": ...}.
Errors use the AppError response format.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from models.command import CommandRequest, CommandResponse
from services.command_pipeline import CommandPipeline, get_command_pipeline
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR"
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/command", response_model=CommandResponse)
async def run_command(
    request: CommandRequest,
    pipeline: CommandPipeline = Depends(get_command_pipeline)
):
    """
    Interpret and execute one catalog command.

    Examples: "show all products", "Delete HP Spectre",
    "Set all MacBook to 2800", "Show duplicates".
    """
    command = (request.command or "").strip()
    if not command:
        return JSONResponse(status_code=400, content={"error": "Missing command"})

    try:
        result = await pipeline.handle(command)
        return CommandResponse(result=result)

    except Exception as e:
        return handle_error(e)
