"""
Interview Proctoring Module

Monitors candidate integrity during AI-conducted interviews by detecting:
- Face absence
- Multiple people in frame
- Looking away (iris and head pose)
- Tab switches

Produces an Integrity Score (0-100) and a risk level for each session.
"""

from .api import router

__all__ = ["router"]
