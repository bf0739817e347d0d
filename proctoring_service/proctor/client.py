"""
Proctoring Client - Sends monitor data to a remote proctoring service

Posts action-tagged bodies to POST /api/proctoring. Used by monitors that
run on the candidate's machine. Errors are logged, never raised, so the
interview is never interrupted by the monitoring backend.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from .sinks import ProctoringSink
from .types import ProctoringEvent, ProctoringMetrics

logger = logging.getLogger(__name__)


class ProctoringClient(ProctoringSink):
    """
    Async HTTP sink.

    Args:
        base_url: service root, defaults to PROCTOR_SERVICE_URL
        timeout: request timeout in seconds
        transport: optional httpx transport (tests use httpx.MockTransport)
    """

    ENDPOINT = "/api/proctoring"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.PROCTOR_SERVICE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, action: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.post(self.ENDPOINT, json={"action": action, **body})

            if response.status_code in [200, 201]:
                return response.json()

            logger.warning(f"[PROCTOR-CLIENT] {action} failed: {response.status_code} {response.text[:200]}")
            return None

        except Exception as e:
            logger.error(f"[PROCTOR-CLIENT] Error on {action}: {e}")
            return None

    async def initialize(self, interview_id: str) -> Optional[Dict[str, Any]]:
        """
        Create a proctoring session.

        Returns:
            Session record dict or None on error
        """
        session = await self._post("initialize", {"interviewId": interview_id})
        if session is not None:
            logger.info(f"[PROCTOR-CLIENT] Session {session.get('id')} started for interview {interview_id}")
        return session

    async def store_snapshot(self, session_id: str, seconds_elapsed: int, metrics: ProctoringMetrics) -> bool:
        result = await self._post("storeSnapshot", {
            "sessionId": session_id,
            "secondsElapsed": seconds_elapsed,
            "metrics": metrics.to_dict()
        })
        return result is not None

    async def store_event(self, session_id: str, event: ProctoringEvent, question_index: Optional[int] = None) -> bool:
        result = await self._post("storeEvent", {
            "sessionId": session_id,
            "event": event.to_dict(),
            "questionIndex": question_index
        })
        return result is not None

    async def finalize(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Finalize the session.

        Returns:
            Final session record or None on error
        """
        return await self._post("finalize", {"sessionId": session_id})
