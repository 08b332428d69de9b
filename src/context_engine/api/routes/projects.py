"""
Project context API routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from context_engine.api.auth import AuthContext, get_auth_context
from context_engine.db.connection import get_db
from context_engine.exceptions import (
    ProjectContextNotFoundError,
    StoreUnavailableError,
)
from context_engine.schemas import (
    ProjectContextList,
    ProjectSessionsResult,
    SnapshotResponse,
)
from context_engine.services.session_service import SessionService

router = APIRouter()


@router.get("", response_model=ProjectContextList)
def list_project_contexts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ProjectContextList:
    """List the caller's project contexts, most recently modified first."""
    try:
        return SessionService(session).list_project_contexts(
            auth.user_id, limit=limit, offset=offset
        )
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )


@router.get("/{project_name}/sessions", response_model=ProjectSessionsResult)
def get_project_sessions(
    project_name: str,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ProjectSessionsResult:
    """Hydrated sessions saved against a project's snapshots."""
    try:
        return SessionService(session).get_sessions_by_project_context(
            auth.user_id, project_name, limit=limit, offset=offset
        )
    except ProjectContextNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )


@router.post(
    "/{project_name}/snapshots",
    response_model=SnapshotResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_manual_snapshot(
    project_name: str,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> SnapshotResponse:
    """Snapshot a project from the files of its newest session."""
    try:
        return SessionService(session).create_manual_snapshot(
            auth.user_id, project_name
        )
    except ProjectContextNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
