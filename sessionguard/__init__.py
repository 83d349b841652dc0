"""
SessionGuard

Behavioral risk scoring for interactive sessions: classifies a session as
human-operated, automated or remotely operated.
"""

from sessionguard.config import DEFAULT_CONFIG, DetectionConfig
from sessionguard.session import DetectionSession

__all__ = [
    "DEFAULT_CONFIG",
    "DetectionConfig",
    "DetectionSession",
]
