from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
import logging

from showshelf.errors import AccessError, InvariantViolation, NotFoundError, PathEncodingError, PersistenceError, ShowShelfError
from showshelf.services.library import Library, ScanReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/library", tags=["library"])


class ScanRequest(BaseModel):
    root: Optional[str] = None


class ProgressUpdate(BaseModel):
    episode_id: int


class ShowResponse(BaseModel):
    id: int
    name: str
    path: str
    last_scanned: Optional[datetime]
    last_watched: Optional[datetime]
    current_episode_id: Optional[int]

    class Config:
        from_attributes = True


class EpisodeResponse(BaseModel):
    id: int
    show_id: int
    name: str
    path: str
    season: Optional[int]
    number: Optional[int]
    special: bool
    size: Optional[int]

    class Config:
        from_attributes = True


class ProgressResponse(BaseModel):
    show_id: int
    current_episode_id: Optional[int]
    last_watched: Optional[datetime]

    class Config:
        from_attributes = True


def get_library(request: Request) -> Library:
    return request.app.state.library


def _http_error(e: ShowShelfError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (AccessError, PathEncodingError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, InvariantViolation):
        logger.error(f"✗ Invariant violation: {e}")
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=503, detail="Database unavailable, nothing was changed")
    return HTTPException(status_code=500, detail=str(e))


def _report_dict(report: ScanReport) -> dict:
    return {
        "root": report.root,
        "plan": report.plan,
        "writes": report.writes,
        "errors": [{"path": e.path, "reason": e.reason} for e in report.errors],
        "collisions": [
            {"key": c.key, "kept": c.kept_path, "dropped": c.dropped_path}
            for c in report.collisions
        ],
    }


@router.post("/scan")
def scan_library(body: Optional[ScanRequest] = None, library: Library = Depends(get_library)):
    """Rescan eines Roots, ohne root alle konfigurierten Roots"""
    try:
        if body and body.root:
            reports = [library.scan_and_reconcile(body.root)]
        else:
            reports = library.scan_all()
    except ShowShelfError as e:
        raise _http_error(e)
    return {"reports": [_report_dict(r) for r in reports]}


@router.get("/shows", response_model=List[ShowResponse])
def list_shows(library: Library = Depends(get_library)):
    """Alle Shows, zuletzt gesehene zuerst"""
    try:
        return library.list_shows_by_recency()
    except ShowShelfError as e:
        raise _http_error(e)


@router.get("/shows/{show_id}/episodes", response_model=List[EpisodeResponse])
def list_episodes(show_id: int, library: Library = Depends(get_library)):
    try:
        return library.list_episodes(show_id)
    except ShowShelfError as e:
        raise _http_error(e)


@router.get("/shows/{show_id}/resume", response_model=Optional[EpisodeResponse])
def resume_point(show_id: int, library: Library = Depends(get_library)):
    """Episode, bei der die Wiedergabe weitergeht"""
    try:
        return library.resume_point(show_id)
    except ShowShelfError as e:
        raise _http_error(e)


@router.get("/shows/{show_id}/next", response_model=Optional[EpisodeResponse])
def next_episode(show_id: int, library: Library = Depends(get_library)):
    try:
        return library.next_episode(show_id)
    except ShowShelfError as e:
        raise _http_error(e)


@router.get("/shows/{show_id}/progress", response_model=ProgressResponse)
def get_progress(show_id: int, library: Library = Depends(get_library)):
    try:
        return library.get_progress(show_id)
    except ShowShelfError as e:
        raise _http_error(e)


@router.put("/shows/{show_id}/progress", response_model=ProgressResponse)
def set_progress(show_id: int, update: ProgressUpdate, library: Library = Depends(get_library)):
    """Aktuelle Episode setzen"""
    try:
        return library.set_current_episode(show_id, update.episode_id)
    except ShowShelfError as e:
        raise _http_error(e)


@router.delete("/shows/{show_id}/progress")
def clear_progress(show_id: int, library: Library = Depends(get_library)):
    try:
        changed = library.clear_current_episode(show_id)
    except ShowShelfError as e:
        raise _http_error(e)
    return {"show_id": show_id, "cleared": changed}
