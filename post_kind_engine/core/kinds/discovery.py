"""
Post Type Discovery.

Infers a post kind from a jf2 property bag, following the W3C Post Type
Discovery algorithm (https://www.w3.org/TR/post-type-discovery/) extended
with the kinds this engine knows about (favorite, bookmark, listen, watch,
read, quote, review, checkin).
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

RSVP_VALUES = {"yes", "no", "maybe", "interested"}

# Checked in this order: the first property present decides the kind
RESPONSE_PROPERTIES: Tuple[Tuple[str, str], ...] = (
    ("in-reply-to", "reply"),
    ("repost-of", "repost"),
    ("like-of", "like"),
    ("favorite-of", "favorite"),
    ("bookmark-of", "bookmark"),
    ("quotation-of", "quote"),
    ("checkin", "checkin"),
    ("listen-of", "listen"),
    ("watch-of", "watch"),
    ("read-of", "read"),
)

MEDIA_PROPERTIES: Tuple[Tuple[str, str], ...] = (
    ("video", "video"),
    ("photo", "photo"),
    ("audio", "audio"),
)


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _has_value(bag: Dict[str, Any], key: str) -> bool:
    value = _first(bag.get(key))
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _plain_text(value: Any) -> str:
    value = _first(value)
    if isinstance(value, dict):
        if value.get("text") is not None:
            return str(value["text"])
        if value.get("value") is not None:
            return str(value["value"])
        if value.get("html") is not None:
            return BeautifulSoup(value["html"], "lxml").get_text(" ")
        return ""
    return str(value) if value is not None else ""


class PostTypeDiscovery:
    """Rule-based kind classifier."""

    def infer_kind(self, bag: Any) -> Optional[str]:
        """
        Infer the kind of an item.

        Args:
            bag: jf2 property bag, optionally carrying the item's `type`

        Returns:
            A kind slug, or None if bag is not a mapping
        """
        if not isinstance(bag, dict):
            return None

        item_type = _first(bag.get("type"))
        if isinstance(item_type, str) and item_type.startswith("h-"):
            item_type = item_type[2:]

        if item_type == "event":
            return "event"
        if item_type == "review" or (_has_value(bag, "rating") and _has_value(bag, "item")):
            return "review"

        rsvp = _first(bag.get("rsvp"))
        if isinstance(rsvp, str) and rsvp.strip().lower() in RSVP_VALUES:
            return "rsvp"

        for key, kind in RESPONSE_PROPERTIES:
            if _has_value(bag, key):
                return kind

        if _has_value(bag, "location") and not _has_value(bag, "content") and not _has_value(bag, "name"):
            return "checkin"

        for key, kind in MEDIA_PROPERTIES:
            if _has_value(bag, key):
                return kind

        return self._note_or_article(bag)

    def _note_or_article(self, bag: Dict[str, Any]) -> str:
        name = _collapse(_plain_text(bag.get("name")))
        if not name:
            return "note"

        content = _collapse(_plain_text(bag.get("content")))
        if not content:
            content = _collapse(_plain_text(bag.get("summary")))
        if not content:
            return "article"

        if content.startswith(name):
            return "note"
        return "article"
