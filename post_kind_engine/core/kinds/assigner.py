"""
Kind assignment: classify an (enriched) item and apply the kind and its
display format to the stored item.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from post_kind_engine.core.kinds.discovery import PostTypeDiscovery
from post_kind_engine.core.kinds.taxonomy import KindInfo, KindTaxonomy

logger = logging.getLogger(__name__)

DEFAULT_KIND = "note"


@dataclass
class KindAssignment:
    """Kind chosen for an item, with its metadata."""
    kind: str
    info: KindInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "display_string": self.info.display_string,
            "display_format": self.info.display_format,
            "shortlink_prefix": self.info.shortlink_prefix,
            "prefix_text": self.info.prefix_text,
        }


class KindStore:
    """Persistence boundary for kinds: the CMS side of the glue."""

    def set_kind(self, item_id: Any, kind: str) -> None:
        raise NotImplementedError

    def set_format(self, item_id: Any, display_format: str) -> None:
        raise NotImplementedError

    def get_kind(self, item_id: Any) -> Optional[str]:
        raise NotImplementedError


class InMemoryKindStore(KindStore):
    """Dictionary-backed KindStore."""

    def __init__(self):
        self.kinds: Dict[Any, str] = {}
        self.formats: Dict[Any, str] = {}

    def set_kind(self, item_id: Any, kind: str) -> None:
        self.kinds[item_id] = kind

    def set_format(self, item_id: Any, display_format: str) -> None:
        self.formats[item_id] = display_format

    def get_kind(self, item_id: Any) -> Optional[str]:
        return self.kinds.get(item_id)


class KindAssigner:
    """
    Glue between classification, taxonomy and storage.

    Holds no resolution logic: it is given the bag after references were
    resolved, so the classifier sees the enriched citations.
    """

    def __init__(
        self,
        classifier: Optional[PostTypeDiscovery] = None,
        taxonomy: Optional[KindTaxonomy] = None,
        store: Optional[KindStore] = None,
    ):
        """
        Initialize the assigner.

        Args:
            classifier: Object with infer_kind(bag) -> Optional[str]
            taxonomy: Object with lookup(slug) -> KindInfo
            store: Where kinds are applied; nothing is stored when None
        """
        self.classifier = classifier or PostTypeDiscovery()
        self.taxonomy = taxonomy or KindTaxonomy()
        self.store = store

    def assign(self, bag: Dict[str, Any], item_id: Any = None) -> Optional[KindAssignment]:
        """
        Classify an item and, when item_id is given, store kind and format.

        Args:
            bag: jf2 property bag of the item
            item_id: Identifier of the stored item, None for a dry run

        Returns:
            The assignment, or None if the classifier found no kind
        """
        kind = self.classifier.infer_kind(bag)
        if not kind:
            logger.debug("Classifier returned no kind")
            return None

        if not self.taxonomy.has_kind(kind):
            logger.warning(f"Classifier returned unknown kind {kind!r}, using {DEFAULT_KIND!r}")
            kind = DEFAULT_KIND

        info = self.taxonomy.lookup(kind)
        assignment = KindAssignment(kind=kind, info=info)

        if item_id is not None and self.store is not None:
            self.store.set_kind(item_id, kind)
            self.store.set_format(item_id, info.display_format)
            logger.info(f"Assigned kind {kind!r} (format {info.display_format!r}) to item {item_id}")

        return assignment
