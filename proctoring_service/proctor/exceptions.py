"""
Proctoring errors
"""


class ProctoringError(Exception):
    """Base error for the proctoring module"""
    pass


class SessionNotFoundError(ProctoringError):
    """No proctoring session with the given id"""

    def __init__(self, session_id: str):
        super().__init__(f"Proctoring session not found: {session_id}")
        self.session_id = session_id


class InterviewNotFoundError(ProctoringError):
    """No interview with the given id"""

    def __init__(self, interview_id: str):
        super().__init__(f"Interview not found: {interview_id}")
        self.interview_id = interview_id


class SessionFinalizedError(ProctoringError):
    """Session was sealed by finalize and no longer accepts data"""

    def __init__(self, session_id: str):
        super().__init__(f"Proctoring session already finalized: {session_id}")
        self.session_id = session_id


class CameraUnavailableError(ProctoringError):
    """Camera permission denied or stream could not be opened"""
    pass
