"""
Tests for kind taxonomy, Post Type Discovery and kind assignment.
"""

from unittest.mock import Mock

import pytest

from post_kind_engine.core.kinds import (
    InMemoryKindStore,
    KindAssigner,
    KindInfo,
    KindTaxonomy,
    PostTypeDiscovery,
)


class TestKindTaxonomy:
    """Test suite for KindTaxonomy."""

    @pytest.fixture
    def taxonomy(self):
        return KindTaxonomy()

    def test_default_vocabulary(self, taxonomy):
        slugs = taxonomy.get_kind_slugs()
        for slug in ("note", "article", "reply", "like", "bookmark", "listen", "watch", "read", "review"):
            assert slug in slugs
        assert len(slugs) == len(set(slugs))

    def test_lookup(self, taxonomy):
        info = taxonomy.lookup("bookmark")
        assert info.display_string == "Bookmark"
        assert info.display_format == "link"
        assert info.prefix_text == "Bookmarked"
        assert info.properties == ("bookmark-of",)

    def test_lookup_unknown_kind(self, taxonomy):
        with pytest.raises(KeyError, match="Unknown post kind"):
            taxonomy.lookup("poke")

    def test_get_kind_info(self, taxonomy):
        assert taxonomy.get_kind_info("like", "shortlink_prefix") == "f"
        assert taxonomy.get_kind_info("poke", "display_format") is None
        with pytest.raises(ValueError, match="Unknown kind field"):
            taxonomy.get_kind_info("like", "colour")

    def test_get_kind_string_falls_back_to_slug(self, taxonomy):
        assert taxonomy.get_kind_string("checkin") == "Check-In"
        assert taxonomy.get_kind_string("poke") == "poke"

    def test_shortlink_types_and_prefix(self, taxonomy):
        assert taxonomy.shortlink_local_types(["t", "f"]) == ["t", "f", "e", "g", "h", "m", "q", "r", "x", "u"]
        assert taxonomy.shortlink_prefix("bookmark", "t") == "h"
        assert taxonomy.shortlink_prefix(None, "t") == "t"
        assert taxonomy.shortlink_prefix("poke", "t") == "t"

    def test_custom_vocabulary(self):
        taxonomy = KindTaxonomy([KindInfo("note", "Note", "aside", None, "")])
        assert taxonomy.get_kind_slugs() == ["note"]
        assert taxonomy.shortlink_prefix("note", "b") == "b"

    def test_duplicate_slugs_rejected(self):
        info = KindInfo("note", "Note", "aside", "t", "")
        with pytest.raises(ValueError, match="Duplicate kind slug"):
            KindTaxonomy([info, info])


class TestPostTypeDiscovery:
    """Test suite for PostTypeDiscovery."""

    @pytest.fixture
    def discovery(self):
        return PostTypeDiscovery()

    @pytest.mark.parametrize("bag,expected", [
        ({"type": "h-event", "name": "Meetup"}, "event"),
        ({"type": "review", "name": "Good"}, "review"),
        ({"rating": "4", "item": {"type": "product", "name": "Kettle"}}, "review"),
        ({"rsvp": "Yes", "in-reply-to": "https://e.test/event"}, "rsvp"),
        ({"in-reply-to": {"type": "cite", "name": "Post"}, "content": "agree"}, "reply"),
        ({"repost-of": "https://x.test/1"}, "repost"),
        ({"like-of": ["https://x.test/1"]}, "like"),
        ({"favorite-of": "https://x.test/1"}, "favorite"),
        ({"bookmark-of": {"type": "cite", "name": "Example"}, "name": "Weekend"}, "bookmark"),
        ({"quotation-of": "https://x.test/1"}, "quote"),
        ({"checkin": {"type": "card", "name": "Cafe"}}, "checkin"),
        ({"listen-of": "https://m.test/song"}, "listen"),
        ({"watch-of": "https://v.test/film"}, "watch"),
        ({"read-of": "https://b.test/book"}, "read"),
        ({"location": "geo:1,2"}, "checkin"),
        ({"video": "https://me.test/v.mp4", "photo": "https://me.test/p.jpg"}, "video"),
        ({"photo": ["https://me.test/p.jpg"], "content": "Sunset"}, "photo"),
        ({"audio": "https://me.test/a.mp3"}, "audio"),
    ])
    def test_infer_kind(self, discovery, bag, expected):
        assert discovery.infer_kind(bag) == expected

    def test_response_property_precedence(self, discovery):
        bag = {"bookmark-of": "https://x.test/b", "in-reply-to": "https://x.test/r"}
        assert discovery.infer_kind(bag) == "reply"

    def test_unknown_rsvp_value_is_ignored(self, discovery):
        assert discovery.infer_kind({"rsvp": "perhaps", "content": "hm"}) == "note"

    def test_empty_response_property_is_ignored(self, discovery):
        assert discovery.infer_kind({"like-of": "", "content": "hi"}) == "note"

    def test_note_without_name(self, discovery):
        assert discovery.infer_kind({"content": "Just a thought"}) == "note"

    def test_article_with_name_and_content(self, discovery):
        bag = {"name": "On caching", "content": {"html": "<p>Caches are hard.</p>"}}
        assert discovery.infer_kind(bag) == "article"

    def test_name_that_prefixes_content_is_a_note(self, discovery):
        bag = {"name": "Just a thought", "content": {"text": "Just  a thought\nabout caching"}}
        assert discovery.infer_kind(bag) == "note"

    def test_name_without_content_is_article(self, discovery):
        assert discovery.infer_kind({"name": "Title only"}) == "article"

    def test_summary_stands_in_for_content(self, discovery):
        assert discovery.infer_kind({"name": "Title", "summary": "Title and more"}) == "note"

    def test_non_mapping(self, discovery):
        assert discovery.infer_kind("note") is None


class TestKindAssigner:
    """Test suite for KindAssigner."""

    @pytest.fixture
    def store(self):
        return InMemoryKindStore()

    @pytest.fixture
    def assigner(self, store):
        return KindAssigner(store=store)

    def test_assign_and_store(self, assigner, store):
        assignment = assigner.assign({"bookmark-of": {"type": "cite", "name": "Example"}}, item_id=42)

        assert assignment.kind == "bookmark"
        assert assignment.info.display_format == "link"
        assert store.get_kind(42) == "bookmark"
        assert store.formats[42] == "link"

    def test_dry_run_does_not_store(self, assigner, store):
        assignment = assigner.assign({"content": "hello"})

        assert assignment.kind == "note"
        assert store.kinds == {}

    def test_unknown_kind_falls_back_to_note(self, store):
        classifier = Mock()
        classifier.infer_kind.return_value = "poke"
        assigner = KindAssigner(classifier=classifier, store=store)

        assignment = assigner.assign({"content": "x"}, item_id="a")

        assert assignment.kind == "note"
        assert store.get_kind("a") == "note"

    def test_no_kind_returns_none(self, store):
        classifier = Mock()
        classifier.infer_kind.return_value = None
        assigner = KindAssigner(classifier=classifier, store=store)

        assert assigner.assign({}, item_id="a") is None
        assert store.kinds == {}

    def test_assignment_to_dict(self, assigner):
        assert assigner.assign({"like-of": "https://x.test/1"}).to_dict() == {
            "kind": "like",
            "display_string": "Like",
            "display_format": "link",
            "shortlink_prefix": "f",
            "prefix_text": "Liked",
        }
