"""
Session API routes.

Endpoints for saving, resuming and listing sessions.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from context_engine.api.auth import AuthContext, get_auth_context
from context_engine.db.connection import get_db
from context_engine.exceptions import SessionConflictError, StoreUnavailableError
from context_engine.schemas import (
    FullSession,
    ListSessionsRequest,
    ResumeMatches,
    ResumeSessionRequest,
    SaveSessionRequest,
    SaveSessionResult,
    SessionCandidate,
    SessionListResult,
    SessionStats,
)
from context_engine.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter()


def suggestion_for(candidate: SessionCandidate) -> str:
    """Hint the caller can use to narrow an ambiguous resume."""
    if candidate.project_name:
        return (
            f'Try: "{candidate.session_name}" from project '
            f'"{candidate.project_name}"'
        )
    return f'Try: "{candidate.session_name}"'


@router.post(
    "", response_model=SaveSessionResult, status_code=status.HTTP_201_CREATED
)
def save_session(
    request: SaveSessionRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> SaveSessionResult:
    """
    Save a session, creating version N+1 when the name already exists.

    Conflicts are returned as 409 with `retryable: true`.
    """
    service = SessionService(session)
    try:
        return service.save_session(request, auth.user_id)
    except SessionConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "retryable": e.retryable},
        )
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )


@router.post("/resume", response_model=Union[FullSession, ResumeMatches])
def resume_session(
    request: ResumeSessionRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> Union[FullSession, ResumeMatches]:
    """
    Resume a session by name.

    Returns the full session on an unambiguous match, otherwise candidates
    (ambiguous or fuzzy) each carrying a suggestion.
    """
    service = SessionService(session)
    try:
        outcome = service.resume_session(request, auth.user_id)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )

    if isinstance(outcome, ResumeMatches):
        for candidate in outcome.matches:
            candidate.suggestion = suggestion_for(candidate)
    return outcome


@router.get("", response_model=SessionListResult)
def list_sessions(
    project_name: Optional[str] = Query(None, max_length=100),
    file_path: Optional[str] = Query(None, max_length=500),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> SessionListResult:
    """List the caller's sessions, newest first."""
    request = ListSessionsRequest(
        project_name=project_name, file_path=file_path, limit=limit, offset=offset
    )
    try:
        return SessionService(session).list_sessions(request, auth.user_id)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )


@router.get("/stats", response_model=SessionStats)
def get_session_stats(
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> SessionStats:
    """Aggregate counts across the caller's sessions."""
    try:
        return SessionService(session).get_session_stats(auth.user_id)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
