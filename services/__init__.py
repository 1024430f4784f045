"""Business logic services layer.

Core services for openani-cli:
- catalog_service: openani.me catalog API client
- history_service: Watch history store
- continuity_service: Continue/resume decisions and the playback session
"""

from services import catalog_service, continuity_service, history_service

__all__ = [
    "catalog_service",
    "continuity_service",
    "history_service",
]
