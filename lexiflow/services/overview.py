"""
Vocabulary Overview - tabular views and statistics over the store.

Builds pandas DataFrames for listing, searching and summarising words
together with their review state.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from .vocabulary_service import VocabularyStore

COLUMNS = [
    "id",
    "original",
    "wordTranslation",
    "questions",
    "enabled",
    "addedAt",
    "categories",
    "reviewCount",
    "wrongCount",
    "interval",
    "nextReview",
    "due",
]


class VocabularyOverview:
    """
    Read-only tabular view of a VocabularyStore.

    Usage:
        overview = VocabularyOverview(store)
        df = overview.to_dataframe()
        stats = overview.get_statistics()
    """

    def __init__(self, store: VocabularyStore):
        self.store = store

    def to_dataframe(self) -> pd.DataFrame:
        """
        One row per word, newest first.

        Returns:
            DataFrame with COLUMNS (empty with the same columns if no words)
        """
        now = self.store.now()
        categories = self.store.categories
        rows = []
        for word in self.store.words.values():
            review = self.store.get_review(word.id)
            rows.append({
                "id": word.id,
                "original": word.original,
                "wordTranslation": word.word_translation,
                "questions": len(word.questions),
                "enabled": word.enabled,
                "addedAt": word.added_at,
                "categories": ", ".join(
                    categories[cid].name for cid in word.category_ids if cid in categories
                ),
                "reviewCount": review.review_count if review else 0,
                "wrongCount": review.wrong_count if review else 0,
                "interval": review.interval if review else 0,
                "nextReview": review.next_review if review else now,
                "due": (review.next_review <= now) if review else True,
            })

        df = pd.DataFrame(rows, columns=COLUMNS)
        if df.empty:
            return df
        return df.sort_values("addedAt", ascending=False).reset_index(drop=True)

    def search(self, query: str, columns: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Search vocabulary by text query.

        Args:
            query: Search query (case-insensitive substring)
            columns: Columns to search (defaults to original, wordTranslation)

        Returns:
            Matching rows
        """
        df = self.to_dataframe()
        if df.empty or not query:
            return df.iloc[0:0]

        columns = columns or ["original", "wordTranslation"]
        query = query.lower()

        mask = pd.Series(False, index=df.index)
        for col in columns:
            if col in df.columns:
                mask |= df[col].astype(str).str.lower().str.contains(query, regex=False, na=False)

        return df[mask].reset_index(drop=True)

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get vocabulary statistics.

        Returns:
            Dictionary with word, review and queue counts
        """
        df = self.to_dataframe()
        stats: Dict[str, Any] = {
            "total_words": len(df),
            "enabled_words": 0,
            "due_reviews": len(self.store.get_due_reviews()),
            "total_reviews": 0,
            "wrong_answers": 0,
            "accuracy": None,
            "words_without_questions": 0,
            "pending": len(self.store.processing_queue),
            "active": len(self.store.active_queue),
            "per_category": self._category_counts(),
        }
        if df.empty:
            return stats

        stats["enabled_words"] = int(df["enabled"].sum())
        stats["total_reviews"] = int(df["reviewCount"].sum())
        stats["wrong_answers"] = int(df["wrongCount"].sum())
        stats["words_without_questions"] = int((df["questions"] == 0).sum())
        if stats["total_reviews"]:
            stats["accuracy"] = round(1 - stats["wrong_answers"] / stats["total_reviews"], 3)
        return stats

    def _category_counts(self) -> Dict[str, int]:
        """Word count per category name, in display order."""
        counts = {}
        words = self.store.words.values()
        for category in self.store.ordered_categories():
            counts[category.name] = sum(1 for w in words if category.id in w.category_ids)
        return counts
