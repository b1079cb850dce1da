"""Service-layer modules: quota, analysis collaborator, and session control."""

from . import analysis, quota, schemas, session, transcript

__all__ = [
    "analysis",
    "quota",
    "schemas",
    "session",
    "transcript",
]
