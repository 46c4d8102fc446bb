"""
Kind taxonomy: the closed vocabulary of post kinds and the metadata attached
to each one (display string, display format, short-link prefix, prefix text).
"""

import logging
from dataclasses import dataclass, fields
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KindInfo:
    """Metadata for one post kind."""
    slug: str
    display_string: str  # Singular name, e.g. "Bookmark"
    display_format: str  # Post format used to render items of this kind
    shortlink_prefix: Optional[str]  # Type letter used in short links, None to keep the default
    prefix_text: str  # Text placed before a cited title, e.g. "Bookmarked"
    properties: Tuple[str, ...] = ()  # Reference properties carried by this kind


DEFAULT_KINDS: Tuple[KindInfo, ...] = (
    KindInfo("note", "Note", "aside", "t", ""),
    KindInfo("article", "Article", "standard", "b", ""),
    KindInfo("reply", "Reply", "link", "t", "In reply to", ("in-reply-to",)),
    KindInfo("repost", "Repost", "link", "t", "Reposted", ("repost-of",)),
    KindInfo("like", "Like", "link", "f", "Liked", ("like-of",)),
    KindInfo("favorite", "Favorite", "link", "f", "Favorited", ("favorite-of",)),
    KindInfo("bookmark", "Bookmark", "link", "h", "Bookmarked", ("bookmark-of",)),
    KindInfo("quote", "Quote", "quote", "q", "Quoted", ("quotation-of",)),
    KindInfo("rsvp", "RSVP", "status", "e", "RSVPed", ("in-reply-to",)),
    KindInfo("checkin", "Check-In", "status", "g", "Checked in at", ("checkin",)),
    KindInfo("event", "Event", "status", "e", ""),
    KindInfo("listen", "Listen", "audio", "a", "Listened to", ("listen-of",)),
    KindInfo("watch", "Watch", "video", "x", "Watched", ("watch-of",)),
    KindInfo("read", "Read", "standard", "x", "Read", ("read-of",)),
    KindInfo("review", "Review", "standard", "r", "Reviewed", ("item",)),
    KindInfo("photo", "Photo", "image", "p", ""),
    KindInfo("video", "Video", "video", "v", ""),
    KindInfo("audio", "Audio", "audio", "a", ""),
)

# Short-link type letters this site defines on top of the default set
LOCAL_SHORTLINK_TYPES: Tuple[str, ...] = (
    "f",  # Favorites, likes
    "e",  # Events
    "g",  # Geo check-ins
    "h",  # Links, bookmarks
    "m",  # Metrics
    "q",  # Questions, quotes
    "r",  # Reviews
    "x",  # Experiences
    "u",  # Status updates
)


class KindTaxonomy:
    """
    Lookup for kind metadata.

    The registry is fixed at construction; pass `kinds` to replace the
    built-in vocabulary.
    """

    def __init__(self, kinds: Optional[Iterable[KindInfo]] = None):
        self._kinds: Dict[str, KindInfo] = {}
        for info in kinds if kinds is not None else DEFAULT_KINDS:
            if info.slug in self._kinds:
                raise ValueError(f"Duplicate kind slug: {info.slug}")
            self._kinds[info.slug] = info

    def get_kind_slugs(self) -> List[str]:
        return list(self._kinds)

    def has_kind(self, slug: str) -> bool:
        return slug in self._kinds

    def lookup(self, slug: str) -> KindInfo:
        """
        Get the metadata for a kind.

        Raises:
            KeyError: If the slug is not part of the vocabulary
        """
        try:
            return self._kinds[slug]
        except KeyError:
            raise KeyError(f"Unknown post kind: {slug}")

    def get_kind_info(self, slug: str, field_name: str):
        """
        Get a single metadata field, or None for unknown kinds.

        Raises:
            ValueError: If field_name is not a KindInfo field
        """
        if field_name not in {f.name for f in fields(KindInfo)}:
            raise ValueError(f"Unknown kind field: {field_name}")
        info = self._kinds.get(slug)
        return getattr(info, field_name) if info is not None else None

    def get_kind_string(self, slug: str) -> str:
        info = self._kinds.get(slug)
        return info.display_string if info is not None else slug

    def shortlink_local_types(self, types: Optional[Iterable[str]] = None) -> List[str]:
        """Extend a list of short-link type letters with the local ones."""
        result = list(types or [])
        for letter in LOCAL_SHORTLINK_TYPES:
            if letter not in result:
                result.append(letter)
        return result

    def shortlink_prefix(self, slug: Optional[str], default: str) -> str:
        """Short-link prefix for a kind, or default when the kind has none."""
        if not slug:
            return default
        prefix = self.get_kind_info(slug, "shortlink_prefix")
        return prefix or default
