"""
Tests for citation downgrade and merge.
"""

import pytest

from post_kind_engine.core.reference_resolver.citation import downgrade, merge_resolved
from post_kind_engine.core.reference_resolver.encoding import EncodingError, Jf2Encoding, Mf2Encoding
from post_kind_engine.core.reference_resolver.models import ReferenceProperty, ResolutionTask


class TestDowngrade:

    def test_entry_becomes_cite(self):
        assert downgrade({"type": "entry", "name": "Example"}) == {"type": "cite", "name": "Example"}

    @pytest.mark.parametrize("doc_type", ["card", "event", "cite", "review"])
    def test_other_types_are_kept(self, doc_type):
        assert downgrade({"type": doc_type})["type"] == doc_type

    def test_input_is_not_modified(self):
        document = {"type": "entry", "name": "Example"}
        downgrade(document)
        assert document["type"] == "entry"


class TestMergeResolved:

    @pytest.fixture
    def citation(self):
        return {"type": "cite", "name": "Post"}

    def test_scalar_is_replaced(self, citation):
        task = ResolutionTask(ReferenceProperty.BOOKMARK_OF, None, "https://example.com/a")
        assert merge_resolved("https://example.com/a", task, citation, Jf2Encoding()) == citation

    def test_list_element_is_replaced(self, citation):
        task = ResolutionTask(ReferenceProperty.LIKE_OF, 1, "https://x.test/2")
        original = ["https://x.test/1", "https://x.test/2", "https://x.test/3"]

        merged = merge_resolved(original, task, citation, Jf2Encoding())

        assert merged == ["https://x.test/1", citation, "https://x.test/3"]
        assert original[1] == "https://x.test/2"

    def test_structured_value_shallow_merge(self, citation):
        task = ResolutionTask(ReferenceProperty.IN_REPLY_TO, None, "https://y.test/p")
        original = {"url": "https://y.test/p", "note": "agree", "name": "Typed title"}

        merged = merge_resolved(original, task, citation, Jf2Encoding())

        assert merged == {"url": "https://y.test/p", "note": "agree", "name": "Post", "type": "cite"}
        assert original["name"] == "Typed title"

    def test_structured_list_element_is_replaced_entirely(self, citation):
        task = ResolutionTask(ReferenceProperty.IN_REPLY_TO, 0, "https://y.test/p")
        original = [
            {"type": ["h-cite"], "properties": {"url": ["https://y.test/p"], "note": ["agree"]}},
            "https://y.test/other",
        ]

        merged = merge_resolved(original, task, citation, Mf2Encoding())

        assert merged == [
            {"type": ["h-cite"], "properties": {"name": ["Post"]}},
            "https://y.test/other",
        ]

    def test_mf2_single_item_merges_properties(self, citation):
        task = ResolutionTask(ReferenceProperty.IN_REPLY_TO, None, "https://y.test/p")
        original = {"type": ["h-cite"], "properties": {"url": ["https://y.test/p"], "note": ["agree"]}}

        merged = merge_resolved(original, task, citation, Mf2Encoding())

        assert merged == {
            "type": ["h-cite"],
            "properties": {"url": ["https://y.test/p"], "note": ["agree"], "name": ["Post"]},
        }

    def test_missing_index_raises(self, citation):
        task = ResolutionTask(ReferenceProperty.LIKE_OF, 3, "https://x.test/4")
        with pytest.raises(ValueError, match=r"like-of\[3\]"):
            merge_resolved(["https://x.test/1"], task, citation, Jf2Encoding())

    def test_lossy_document_raises(self):
        task = ResolutionTask(ReferenceProperty.BOOKMARK_OF, None, "https://example.com/a")
        with pytest.raises(EncodingError):
            merge_resolved("https://example.com/a", task, {"type": "cite", "category": ["one"]}, Mf2Encoding())
