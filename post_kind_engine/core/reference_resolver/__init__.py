"""
Reference resolver module.

This module resolves the external resources a post refers to (bookmarked,
liked, replied-to, read, listened-to or watched URLs) into citations and
embeds them back into the post's properties.

The main entry point is the PostIngestPipeline class in pipeline.py.
"""

# Core components
from post_kind_engine.core.reference_resolver.detector import ReferenceDetector, validate_url
from post_kind_engine.core.reference_resolver.url_resolver import ResourceResolver, UrlResolver
from post_kind_engine.core.reference_resolver.citation import downgrade, merge_resolved
from post_kind_engine.core.reference_resolver.encoding import (
    EncodingError,
    Jf2Encoding,
    Mf2Encoding,
    PropertyEncoding,
)
from post_kind_engine.core.reference_resolver.resolution_orchestrator import ResolutionOrchestrator

# Main pipeline entry point
from post_kind_engine.core.reference_resolver.pipeline import IngestResult, PostIngestPipeline

# Data models
from post_kind_engine.core.reference_resolver.models import (
    FailureReason,
    PropertyBag,
    ReferenceProperty,
    ResolutionFailure,
    ResolutionOutcome,
    ResolutionResult,
    ResolutionStatus,
    ResolutionTask,
)

__all__ = [
    # Main pipeline entry point
    'PostIngestPipeline',
    'IngestResult',

    # Core components
    'ReferenceDetector',
    'validate_url',
    'ResourceResolver',
    'UrlResolver',
    'downgrade',
    'merge_resolved',
    'PropertyEncoding',
    'Jf2Encoding',
    'Mf2Encoding',
    'EncodingError',
    'ResolutionOrchestrator',

    # Data models
    'PropertyBag',
    'ReferenceProperty',
    'ResolutionTask',
    'ResolutionOutcome',
    'ResolutionStatus',
    'FailureReason',
    'ResolutionFailure',
    'ResolutionResult',
]
