"""Persistence for proctoring sessions"""

from .repository import ProctoringRepository

__all__ = ["ProctoringRepository"]
