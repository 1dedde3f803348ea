"""
releaseflow - git release orchestration with rollback
"""

__version__ = "0.1.0"

from .core import ReleaseOrchestrator
from .errors import ReleaseError

__all__ = ["ReleaseOrchestrator", "ReleaseError"]
