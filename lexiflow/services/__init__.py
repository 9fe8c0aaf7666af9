"""Services layer for business logic separation."""

from .ai_service import (
    AIConfig,
    AIProvider,
    AIService,
    EnrichmentError,
    ProviderError,
    WordEnricher,
    create_ai_service,
)
from .repository import BaseRepository, JSONStateRepository, MemoryRepository, migrate_state
from .vocabulary_service import ALL_CATEGORIES, VocabularyStore
from .enrichment_queue import EnrichmentQueueController
from .overview import VocabularyOverview

__all__ = [
    "AIConfig",
    "AIProvider",
    "AIService",
    "EnrichmentError",
    "ProviderError",
    "WordEnricher",
    "create_ai_service",
    "BaseRepository",
    "JSONStateRepository",
    "MemoryRepository",
    "migrate_state",
    "ALL_CATEGORIES",
    "VocabularyStore",
    "EnrichmentQueueController",
    "VocabularyOverview",
]
