"""
Proctoring API - FastAPI endpoints for interview proctoring

Endpoints:
- POST /api/proctoring - Action-tagged control endpoint
    initialize     {interviewId}                                  -> session record
    storeSnapshot  {sessionId, secondsElapsed, metrics}           -> {"success": true}
    storeEvent     {sessionId, event, questionIndex}              -> {"success": true}
    finalize       {sessionId}                                    -> finalized session record
- GET /api/proctoring/sessions/{session_id} - Session status
- GET /api/proctoring/sessions/{session_id}/timeline - Snapshots and events
- GET /api/proctoring/health - Health check
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache
from typing import Annotated, Any, Dict, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel

from ..db import build_session_factory, get_engine
from .exceptions import InterviewNotFoundError, SessionFinalizedError, SessionNotFoundError
from .service import ProctoringService
from .storage.repository import ProctoringRepository
from .types import GazeDirection, HeadPose, ProctoringEvent, ProctoringMetrics, Severity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctoring", tags=["Proctoring"])


@lru_cache()
def get_proctoring_service() -> ProctoringService:
    """Process-wide service; batch writes run in worker threads (overridden in tests)"""
    return ProctoringService(ProctoringRepository(build_session_factory(get_engine())), offload_io=True)


# ============== Request/Response Models ==============

class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HeadPoseModel(CamelModel):
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0


class MetricsModel(CamelModel):
    """Live metrics captured by the monitor"""
    face_detected: bool
    face_count: int = Field(..., ge=0)
    attention_score: float = Field(..., ge=0, le=100)
    gaze_direction: str = GazeDirection.CENTER.value
    head_pose: HeadPoseModel = Field(default_factory=HeadPoseModel)
    face_distance: str = "optimal"
    lighting_quality: str = "good"
    iris_deviation: float = 0.0

    def to_metrics(self) -> ProctoringMetrics:
        return ProctoringMetrics(
            face_detected=self.face_detected,
            face_count=self.face_count,
            attention_score=self.attention_score,
            gaze_direction=self.gaze_direction,
            head_pose=HeadPose(**self.head_pose.model_dump()),
            face_distance=self.face_distance,
            lighting_quality=self.lighting_quality,
            iris_deviation=self.iris_deviation
        )


class EventModel(CamelModel):
    """A debounced event; non-violation types are acknowledged but not stored"""
    type: str
    timestamp: datetime
    confidence: float = Field(..., ge=0, le=1)
    severity: Severity
    message: str = ""
    metadata: Optional[Dict[str, Any]] = None

    def to_event(self) -> ProctoringEvent:
        return ProctoringEvent(
            type=self.type,
            timestamp=self.timestamp,
            confidence=self.confidence,
            severity=self.severity.value,
            message=self.message,
            metadata=self.metadata or {}
        )


class InitializeRequest(CamelModel):
    action: Literal["initialize"]
    interview_id: str = Field(..., min_length=1, description="Interview being proctored")


class StoreSnapshotRequest(CamelModel):
    action: Literal["storeSnapshot"]
    session_id: str
    seconds_elapsed: float = Field(..., ge=0, description="Seconds since monitoring started")
    metrics: MetricsModel


class StoreEventRequest(CamelModel):
    action: Literal["storeEvent"]
    session_id: str
    event: EventModel
    question_index: Optional[int] = Field(None, ge=0)


class FinalizeRequest(CamelModel):
    action: Literal["finalize"]
    session_id: str


class ProctoringRequest(RootModel):
    """Action-tagged request body"""
    root: Annotated[
        Union[InitializeRequest, StoreSnapshotRequest, StoreEventRequest, FinalizeRequest],
        Field(discriminator="action")
    ]


class AckResponse(BaseModel):
    success: bool = True


# ============== Endpoints ==============

@router.post("")
async def proctoring_action(
    request: ProctoringRequest,
    service: ProctoringService = Depends(get_proctoring_service)
) -> Dict[str, Any]:
    """
    Single control endpoint for the monitor.

    Errors: 404 unknown session/interview, 409 finalized session,
    422 invalid body or unknown action, 500 anything else.
    """
    body = request.root

    try:
        if isinstance(body, InitializeRequest):
            session = await service.initialize_async(body.interview_id)
            return session.to_dict()

        if isinstance(body, StoreSnapshotRequest):
            await service.store_snapshot_async(body.session_id, int(body.seconds_elapsed), body.metrics.to_metrics())
            return AckResponse().model_dump()

        if isinstance(body, StoreEventRequest):
            await service.store_event_async(body.session_id, body.event.to_event(), body.question_index)
            return AckResponse().model_dump()

        session = await service.finalize_async(body.session_id)
        return session.to_dict()

    except (SessionNotFoundError, InterviewNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionFinalizedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Proctoring API error on {body.action}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/sessions/{session_id}")
async def get_session_status(
    session_id: str,
    service: ProctoringService = Depends(get_proctoring_service)
) -> Dict[str, Any]:
    """Session record with lifecycle state and buffered event count"""
    try:
        return await service.get_status_async(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/sessions/{session_id}/timeline")
async def get_session_timeline(
    session_id: str,
    service: ProctoringService = Depends(get_proctoring_service)
) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(service.get_timeline, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/health")
async def proctoring_health(service: ProctoringService = Depends(get_proctoring_service)):
    """Health check for proctoring module"""
    return {
        "status": "healthy",
        "module": "proctoring",
        "buffered_sessions": len(service.batcher.sessions)
    }
