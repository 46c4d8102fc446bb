"""
Kind classification: taxonomy, Post Type Discovery and kind assignment.
"""

from post_kind_engine.core.kinds.assigner import (
    InMemoryKindStore,
    KindAssigner,
    KindAssignment,
    KindStore,
)
from post_kind_engine.core.kinds.discovery import PostTypeDiscovery
from post_kind_engine.core.kinds.taxonomy import KindInfo, KindTaxonomy

__all__ = [
    'InMemoryKindStore',
    'KindAssigner',
    'KindAssignment',
    'KindInfo',
    'KindStore',
    'KindTaxonomy',
    'PostTypeDiscovery',
]
