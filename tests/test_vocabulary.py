"""
Vocabulary Tests - category/tag lists derived from prompt usage.

Run with: pytest tests/test_vocabulary.py -v
"""


class TestReconcile:
    """Test vocabulary derivation."""

    def test_empty_library(self):
        """No prompts means sentinel-only lists."""
        from promptbox.library.vocabulary import reconcile

        assert reconcile([]) == {"categories": ["ALL"], "tags": ["ALL"]}

    def test_first_seen_order(self, sample_prompts):
        """Without a previous vocabulary, labels appear in first-seen order."""
        from promptbox.library.vocabulary import reconcile

        vocab = reconcile(sample_prompts)

        assert vocab["categories"] == ["ALL", "frontend", "vibe", "backend"]
        assert vocab["tags"] == ["ALL", "chatgpt", "work", "super"]

    def test_previous_order_preserved(self, sample_prompts):
        """Surviving entries keep their earlier order; unused ones are dropped."""
        from promptbox.library.vocabulary import reconcile

        previous = {"categories": ["ALL", "backend", "stale", "frontend"], "tags": ["ALL"]}
        vocab = reconcile(sample_prompts, previous=previous)

        assert vocab["categories"] == ["ALL", "backend", "frontend", "vibe"]

    def test_idempotent(self, sample_prompts):
        """Reconciling against its own result changes nothing."""
        from promptbox.library.vocabulary import reconcile

        once = reconcile(sample_prompts)

        assert reconcile(sample_prompts, previous=once) == once

    def test_inputs_untouched(self, sample_prompts):
        """reconcile does not modify its arguments."""
        from promptbox.library.vocabulary import reconcile

        previous = {"categories": ["ALL", "x"], "tags": ["ALL"]}
        reconcile(sample_prompts, previous=previous)

        assert previous == {"categories": ["ALL", "x"], "tags": ["ALL"]}

    def test_result_is_sound(self, sample_prompts):
        """Reconciled vocabulary lists exactly what prompts use."""
        from promptbox.library.vocabulary import is_sound, reconcile

        assert is_sound(sample_prompts, reconcile(sample_prompts))
        assert not is_sound(sample_prompts, {"categories": ["ALL"], "tags": ["ALL"]})


class TestMerge:
    """Test appending hand-off vocabulary."""

    def test_merge_appends_without_duplicates(self):
        """New labels are appended once; the sentinel stays first."""
        from promptbox.library.vocabulary import merge_vocabulary

        merged = merge_vocabulary(
            {"categories": ["ALL", "a"], "tags": ["ALL"]},
            new_categories=["a", "b", " b "],
            new_tags=["t"],
        )

        assert merged == {"categories": ["ALL", "a", "b"], "tags": ["ALL", "t"]}


class TestCategoryTagMap:
    """Test the sidebar tree."""

    def test_tags_grouped_by_category(self, sample_prompts):
        """Each category lists tags from prompts in that category."""
        from promptbox.library.vocabulary import category_tag_map, reconcile

        tree = category_tag_map(sample_prompts, reconcile(sample_prompts)["categories"])

        assert tree["ALL"] == []
        assert tree["frontend"] == ["chatgpt", "work"]
        assert tree["backend"] == ["work", "super"]
