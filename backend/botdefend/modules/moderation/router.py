"""API router for live chat moderation."""

from fastapi import APIRouter, Depends, HTTPException, status

from botdefend.core.exceptions import (
    AuthError,
    BotDefendError,
    CredentialPoolExhausted,
    InvalidUrlError,
    ModerationActionError,
    NoActiveSessionError,
    NotLiveError,
    QuotaExhaustedError,
    TransportError,
)
from botdefend.modules.moderation.orchestrator import ModerationOrchestrator
from botdefend.modules.moderation.schemas import (
    BotPoolResponse,
    LogExportResponse,
    ManualActionRequest,
    ManualActionResponse,
    SessionSnapshotResponse,
    StartSessionRequest,
)
from botdefend.modules.moderation.service import get_orchestrator

router = APIRouter(prefix="/moderation", tags=["moderation"])

# Most specific first
ERROR_STATUS = (
    (InvalidUrlError, status.HTTP_400_BAD_REQUEST),
    (NotLiveError, status.HTTP_404_NOT_FOUND),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
    (CredentialPoolExhausted, status.HTTP_503_SERVICE_UNAVAILABLE),
    (QuotaExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (NoActiveSessionError, status.HTTP_409_CONFLICT),
)


def to_http_exception(error: BotDefendError) -> HTTPException:
    """Map a pipeline error to an HTTP error response."""
    if isinstance(error, ModerationActionError):
        code = status.HTTP_403_FORBIDDEN if error.forbidden else status.HTTP_502_BAD_GATEWAY
        return HTTPException(status_code=code, detail={"reason": error.reason, "message": error.describe()})
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail={"reason": error.reason, "message": error.describe()})
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"reason": error.reason, "message": error.describe()},
    )


@router.post("/session", response_model=SessionSnapshotResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> SessionSnapshotResponse:
    """Start moderating a live stream.

    Any session already running is stopped first.
    """
    try:
        await orchestrator.start_session(request.url, request.settings)
    except BotDefendError as e:
        raise to_http_exception(e)
    return SessionSnapshotResponse(**orchestrator.snapshot())


@router.delete("/session", response_model=SessionSnapshotResponse)
async def stop_session(
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> SessionSnapshotResponse:
    """Stop moderating. The final log and counters remain readable."""
    orchestrator.stop_session()
    return SessionSnapshotResponse(**orchestrator.snapshot())


@router.get("/session", response_model=SessionSnapshotResponse)
async def get_session(
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> SessionSnapshotResponse:
    """Get counters, log and moderator status of the current session."""
    return SessionSnapshotResponse(**orchestrator.snapshot())


@router.get("/log")
async def get_log(
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> list[dict]:
    """Get the moderation log, newest first."""
    return orchestrator.log.to_list()


@router.get("/log/export", response_model=LogExportResponse)
async def export_log(
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> LogExportResponse:
    """Export the moderation log with a dated file name."""
    return LogExportResponse(
        filename=orchestrator.export_filename(),
        entries=orchestrator.export_log(),
    )


@router.post("/actions", response_model=ManualActionResponse)
async def take_manual_action(
    request: ManualActionRequest,
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> ManualActionResponse:
    """Delete a message, or time out or ban an author."""
    try:
        updated = await orchestrator.take_manual_action(request.kind, request.target_id)
    except BotDefendError as e:
        raise to_http_exception(e)
    return ManualActionResponse(
        kind=request.kind,
        target_id=request.target_id,
        success=True,
        updated_entries=updated,
    )


@router.get("/bots", response_model=BotPoolResponse)
async def list_bots(
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
) -> BotPoolResponse:
    """List bot identities (without secrets) and API key quota."""
    api_keys = orchestrator.source.api_keys
    return BotPoolResponse(
        source=orchestrator.pool.source,
        bots=orchestrator.pool.describe(),
        quota=api_keys.status() if api_keys is not None and len(api_keys) else None,
    )
