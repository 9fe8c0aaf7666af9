"""
Tests for the vocabulary store.

Tests cover:
- Word, question and review mutations
- Category cascade, ordering and selection fallback
- Queue primitives
- Save/load round trip and load-time recovery
- Export and import merge
"""

import pytest

from lexiflow.config import SettingsManager
from lexiflow.models import Category, Question, ReviewItem, Word
from lexiflow.services import MemoryRepository, VocabularyStore


class TestWords:

    def test_add_word_creates_due_review(self, store, add_word, clock):
        word = add_word("lucid")
        review = store.get_review(word.id)

        assert review.next_review == clock.now
        assert review.interval == 0
        assert [r.word_id for r in store.get_due_reviews()] == [word.id]

    def test_delete_word_removes_review(self, store, add_word):
        add_word("keep")
        before = store.to_state()

        word = add_word("lucid")
        store.delete_word(word.id)

        assert store.get_word(word.id) is None
        assert store.get_review(word.id) is None
        assert store.to_state() == before

    def test_missing_ids_are_noops(self, store, add_word):
        add_word("lucid")
        before = store.to_state()

        store.delete_word("nope")
        store.toggle_word_status("nope")
        store.add_question("nope", Question("s", "t", "c"))
        store.update_question("nope", "q", {"sentence": "x"})
        store.delete_question("nope", "q")
        store.reset_word_stats("nope")
        store.rename_category("nope", "x")
        store.delete_category("nope")
        store.move_category("nope", "up")
        store.update_review(ReviewItem("nope", 0))

        assert store.to_state() == before

    def test_toggle_word_status(self, store, add_word):
        word = add_word("lucid")
        store.toggle_word_status(word.id)
        assert store.get_word(word.id).enabled is False
        store.toggle_word_status(word.id)
        assert store.get_word(word.id).enabled is True

    def test_clear_all_words(self, store, add_word):
        add_word("lucid")
        store.add_to_queue(["murky"])
        store.clear_all_words()
        assert store.words == {}
        assert store.reviews == {}
        assert store.processing_queue == []

    def test_due_reviews_sorted(self, store, add_word, clock):
        early = add_word("early")
        late = add_word("late")
        future = add_word("future")
        store.update_review(store.get_review(early.id).copy(next_review=clock.now - 5000))
        store.update_review(store.get_review(late.id).copy(next_review=clock.now - 10))
        store.update_review(store.get_review(future.id).copy(next_review=clock.now + 60_000))

        assert [r.word_id for r in store.get_due_reviews()] == [early.id, late.id]

        clock.advance(1)
        assert len(store.get_due_reviews()) == 3

    def test_reset_word_stats(self, store, add_word, clock):
        word = add_word("lucid")
        store.update_review(store.get_review(word.id).copy(interval=80, review_count=4, wrong_count=2))
        clock.advance(10)

        store.reset_word_stats(word.id)

        review = store.get_review(word.id)
        assert (review.interval, review.review_count, review.wrong_count) == (0, 0, 0)
        assert review.next_review == clock.now


class TestQuestions:

    def test_add_update_delete(self, store, add_word):
        word = add_word("lucid")
        question = Question("A lucid answer.", "translation", "A __________ answer.")

        store.add_question(word.id, question)
        store.update_question(word.id, question.id, {"translation": "new", "id": "hijack"})
        updated = store.get_word(word.id).get_question(question.id)
        assert updated.translation == "new"
        assert updated.sentence == "A lucid answer."

        store.delete_question(word.id, question.id)
        assert store.get_word(word.id).get_question(question.id) is None

    def test_last_question_may_be_deleted(self, store, add_word):
        word = add_word("lucid")
        store.delete_question(word.id, word.questions[0].id)
        assert store.get_word(word.id).questions == []


class TestCategories:

    def test_delete_category_cascades(self, store, add_word):
        keep = store.add_category("Keep")
        gone = store.add_category("Gone")
        word = add_word("lucid", categories=[keep, gone])
        store.set_selected_categories([gone])

        store.delete_category(gone)

        assert store.get_category(gone) is None
        assert store.get_word(word.id).category_ids == [keep]
        assert store.category_order == [keep]
        assert store.selected_category_ids == ["all"]

    def test_selection_keeps_remaining_ids(self, store):
        a = store.add_category("A")
        b = store.add_category("B")
        store.set_selected_categories([a, b])
        store.delete_category(b)
        assert store.selected_category_ids == [a]

    def test_selection_drops_unknown_ids(self, store):
        a = store.add_category("A")
        store.set_selected_categories(["ghost", a, a])
        assert store.selected_category_ids == [a]
        store.set_selected_categories([])
        assert store.selected_category_ids == ["all"]

    def test_move_category(self, store):
        a = store.add_category("A")
        b = store.add_category("B")
        c = store.add_category("C")

        store.move_category(c, "up")
        assert store.category_order == [a, c, b]
        store.move_category(a, "down")
        assert store.category_order == [c, a, b]

        # Edges are no-ops
        store.move_category(c, "up")
        store.move_category(b, "down")
        assert store.category_order == [c, a, b]

    def test_move_category_bad_direction(self, store):
        a = store.add_category("A")
        with pytest.raises(ValueError):
            store.move_category(a, "sideways")

    def test_membership(self, store, add_word):
        a = store.add_category("A")
        word = add_word("lucid")

        store.add_word_to_category(word.id, a)
        store.add_word_to_category(word.id, a)
        store.add_word_to_category(word.id, "ghost")
        assert store.get_word(word.id).category_ids == [a]

        store.remove_word_from_category(word.id, a)
        assert store.get_word(word.id).category_ids == []

    def test_rename(self, store):
        a = store.add_category("A")
        store.rename_category(a, "Animals")
        assert [c.name for c in store.ordered_categories()] == ["Animals"]


class TestQueuePrimitives:

    def test_move_and_complete(self, store):
        store.add_to_queue(["a", "b", "a"])

        assert store.move_to_active() == "a"
        assert store.move_to_active() == "b"
        assert store.processing_queue == ["a"]
        assert store.active_queue == ["a", "b"]

        store.complete_processing("a")
        assert store.active_queue == ["b"]

    def test_move_from_empty(self, store):
        assert store.move_to_active() is None

    def test_complete_unknown_is_noop(self, store):
        store.complete_processing("ghost")
        assert store.active_queue == []


class TestSettings:

    def test_invalid_settings_leave_state(self, store):
        with pytest.raises(ValueError):
            store.set_settings({"concurrencyLimit": 0, "theme": "light"})
        assert store.settings.get("theme") == "dark"

    def test_change_notification(self, store):
        seen = []
        store.on_change(seen.append)
        store.set_settings({"concurrencyLimit": 2})
        assert seen == [frozenset({"settings"})]
        assert store.has_unsaved_changes


class TestPersistence:

    def test_round_trip(self, store, add_word, repository, clock):
        a = store.add_category("A")
        add_word("lucid", categories=[a])
        store.add_to_queue(["murky"])
        store.set_settings({"concurrencyLimit": 3, "apiKey": "secret"})
        assert store.save()
        assert not store.has_unsaved_changes

        restored = VocabularyStore(repository, settings=SettingsManager(use_env=False), clock=clock)
        assert restored.load()
        assert restored.to_state() == store.to_state()

    def test_load_requeues_active_words(self, clock):
        state = {"processingQueue": ["c"], "activeQueue": ["a", "b"]}
        store = VocabularyStore(MemoryRepository(state), settings=SettingsManager(use_env=False), clock=clock)

        store.load()

        assert store.processing_queue == ["a", "b", "c"]
        assert store.active_queue == []

    def test_load_rebuilds_missing_reviews(self, clock):
        word = Word.create("lucid", added_at=1)
        state = {"words": {word.id: word.to_dict()}, "reviews": {"orphan": ReviewItem("orphan", 5).to_dict()}}
        store = VocabularyStore(MemoryRepository(state), settings=SettingsManager(use_env=False), clock=clock)

        store.load()

        assert set(store.reviews) == {word.id}
        assert store.get_review(word.id).next_review == clock.now

    def test_load_ignores_malformed_prompts(self, clock):
        state = {"settings": {"prompts": "oops"}}
        store = VocabularyStore(MemoryRepository(state), settings=SettingsManager(use_env=False), clock=clock)

        assert store.load() is True
        assert store.settings.get("prompts") is None

    def test_load_nothing_stored(self, store):
        assert store.load() is False

    def test_close_saves_when_dirty(self, store, repository):
        store.close()
        assert repository.save_count == 0
        store.add_category("A")
        store.close()
        assert repository.save_count == 1


class TestExportImport:

    def test_export_blanks_credentials(self, store):
        store.set_settings({"apiKey": "secret"})
        data = store.export_data()
        assert data["settings"]["apiKey"] == ""
        assert "exportDate" in data
        assert store.export_data(include_credentials=True)["settings"]["apiKey"] == "secret"

    def test_import_merges_by_id(self, store, add_word, clock):
        existing = add_word("lucid")
        replaced = add_word("murky")

        incoming = Word.create("bright", added_at=clock.now)
        changed = replaced.copy(word_translation="changed")
        category = Category(id="c1", name="Imported", created_at=1)
        store.import_data({
            "words": {incoming.id: incoming.to_dict(), changed.id: changed.to_dict()},
            "categories": {category.id: category.to_dict()},
            "selectedCategoryIds": ["c1"],
            "processingQueue": ["queued"],
            "settings": {"apiKey": "", "concurrencyLimit": 2},
        })

        words = store.words
        assert set(words) == {existing.id, replaced.id, incoming.id}
        assert words[replaced.id].word_translation == "changed"
        assert store.get_review(incoming.id) is not None
        assert store.category_order == ["c1"]
        assert store.selected_category_ids == ["c1"]
        assert store.processing_queue == ["queued"]
        assert store.settings.concurrency_limit == 2

    def test_import_keeps_selection_when_absent(self, store):
        a = store.add_category("A")
        store.set_selected_categories([a])
        store.import_data({"words": {}})
        assert store.selected_category_ids == [a]

    def test_import_blank_key_keeps_existing(self, store):
        store.set_settings({"apiKey": "secret"})
        store.import_data({"settings": {"apiKey": ""}})
        assert store.settings.get("apiKey") == "secret"

    def test_malformed_import_changes_nothing(self, store, add_word):
        add_word("lucid")
        before = store.to_state()

        with pytest.raises(ValueError):
            store.import_data({"words": {"x": {"original": "no id"}}})
        with pytest.raises(ValueError):
            store.import_data({"settings": {"concurrencyLimit": 0}})

        assert store.to_state() == before

    def test_malformed_prompts_import_rejected(self, store):
        before = store.to_state()
        with pytest.raises(ValueError):
            store.import_data({"settings": {"prompts": "oops"}})
        assert store.to_state() == before
