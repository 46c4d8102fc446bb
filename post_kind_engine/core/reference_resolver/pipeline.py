"""
Ingest pipeline for incoming posts.

Composes the steps that run when an item is submitted:

1. ResolutionOrchestrator - resolves reference properties into citations
2. Diagnostics sinks - receive one record per unresolved reference
3. KindAssigner - classifies the enriched item and applies kind and display format

Failures in step 1 never block steps 2 and 3: an item with an unresolvable
reference is still classified and saved with the original value.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from post_kind_engine.core.kinds.assigner import KindAssigner, KindAssignment
from post_kind_engine.core.reference_resolver.detector import is_query_request
from post_kind_engine.core.reference_resolver.diagnostics import DiagnosticsSink, LoggingSink
from post_kind_engine.core.reference_resolver.encoding import Mf2Encoding, PropertyEncoding
from post_kind_engine.core.reference_resolver.models import ResolutionResult
from post_kind_engine.core.reference_resolver.resolution_orchestrator import ResolutionOrchestrator
from post_kind_engine.core.reference_resolver.url_resolver import UrlResolver

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of running one request through the pipeline."""
    request: Dict[str, Any]
    resolution: ResolutionResult
    assignment: Optional[KindAssignment] = None
    passthrough: bool = False  # True for query requests and requests without properties

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request,
            "kind": self.assignment.to_dict() if self.assignment else None,
            "resolved": list(self.resolution.resolved),
            "skipped": self.resolution.skipped,
            "failures": [f.to_dict() for f in self.resolution.failures],
            "passthrough": self.passthrough,
        }


class PostIngestPipeline:
    """
    Runs reference resolution and kind assignment for Micropub requests.

    Requests are decoded microformats2 JSON, so the default encoding is mf2.
    """

    def __init__(
        self,
        orchestrator: Optional[ResolutionOrchestrator] = None,
        kind_assigner: Optional[KindAssigner] = None,
        sinks: Optional[List[DiagnosticsSink]] = None,
        encoding: Optional[PropertyEncoding] = None,
        use_cache: bool = True,
    ):
        """
        Initialize the pipeline with its components.

        Args:
            orchestrator: Reference resolution step (built with `encoding` if None)
            kind_assigner: Kind classification step
            sinks: Destinations for resolution failures (logging by default)
            encoding: Native encoding of incoming properties; must match the
                orchestrator's encoding when both are given
            use_cache: Whether the default URL resolver caches resolutions

        Raises:
            ValueError: If encoding and orchestrator.encoding differ
        """
        if orchestrator is not None:
            if encoding is not None and type(encoding) is not type(orchestrator.encoding):
                raise ValueError(
                    f"encoding {encoding.name!r} does not match the orchestrator's {orchestrator.encoding.name!r}"
                )
            encoding = orchestrator.encoding
        self.encoding = encoding or Mf2Encoding()
        self.orchestrator = orchestrator or ResolutionOrchestrator(
            resolver=UrlResolver(use_cache=use_cache),
            encoding=self.encoding,
        )
        self.kind_assigner = kind_assigner or KindAssigner()
        self.sinks = sinks if sinks is not None else [LoggingSink()]

    def process_request(self, request: Dict[str, Any], item_id: Any = None) -> IngestResult:
        """
        Process one Micropub request.

        Args:
            request: Decoded request, e.g. {"type": ["h-entry"], "properties": {...}}
            item_id: Identifier of the created or updated item; kinds are only
                stored when it is given

        Returns:
            IngestResult with the enriched request, kind assignment and failures
        """
        if not isinstance(request, dict):
            raise ValueError("request must be a dict")

        if is_query_request(request) or not isinstance(request.get("properties"), dict):
            logger.debug("Passing request through without processing")
            return IngestResult(request=request, resolution=ResolutionResult(bag=request), passthrough=True)

        logger.info("Step 1: Resolving reference properties...")
        resolution = self.orchestrator.process_request(request)

        logger.info("Step 2: Recording %d resolution failures...", len(resolution.failures))
        self._record_failures(resolution)

        logger.info("Step 3: Assigning post kind...")
        properties = self.encoding.decode_properties(request["properties"])
        item_type = request.get("type")
        if item_type:
            properties["type"] = self.encoding.decode(item_type)
        assignment = self.kind_assigner.assign(properties, item_id=item_id)
        if assignment:
            logger.info("Classified item as %s", assignment.kind)

        return IngestResult(request=request, resolution=resolution, assignment=assignment)

    def _record_failures(self, resolution: ResolutionResult) -> None:
        for failure in resolution.failures:
            for sink in self.sinks:
                try:
                    sink.record(failure)
                except Exception as e:
                    logger.error("Diagnostics sink %s failed: %s", type(sink).__name__, e)
