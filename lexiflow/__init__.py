"""
LexiFlow - vocabulary enrichment and cloze practice.

Words are enriched in the background by an LLM provider into example
sentences with cloze blanks, then practised with a weighted-random
scheduler and a fixed-table spaced repetition update.
"""

__version__ = "1.0.0"

from .config import Config, SettingsManager
from .services import (
    AIService,
    EnrichmentError,
    EnrichmentQueueController,
    JSONStateRepository,
    VocabularyOverview,
    VocabularyStore,
    create_ai_service,
)
from .practice import PracticeScheduler, PracticeSession, calculate_next_review

__all__ = [
    '__version__',
    'Config',
    'SettingsManager',
    'AIService',
    'EnrichmentError',
    'EnrichmentQueueController',
    'JSONStateRepository',
    'VocabularyOverview',
    'VocabularyStore',
    'create_ai_service',
    'PracticeScheduler',
    'PracticeSession',
    'calculate_next_review',
]
