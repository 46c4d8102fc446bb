"""
Resolution orchestrator component.

Drives reference resolution over one item: detect the reference URLs, resolve
them concurrently, then downgrade, re-encode and merge every success back
into the property bag. A failing URL never stops the others; it leaves its
original value in place and is reported in the result's failure list.

Core features:
- Bounded thread pool for resolution (I/O bound, tasks are independent)
- Merging on the calling thread, in detector order, after all outcomes are known
- Individual failure isolation, including encoding failures
- Query requests and requests without properties pass through untouched
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from post_kind_engine.core.reference_resolver.citation import downgrade, merge_resolved
from post_kind_engine.core.reference_resolver.config import MAX_CONCURRENT_RESOLUTIONS
from post_kind_engine.core.reference_resolver.detector import ReferenceDetector, is_query_request
from post_kind_engine.core.reference_resolver.encoding import (
    EncodingError,
    Jf2Encoding,
    PropertyEncoding,
    normalize_jf2,
)
from post_kind_engine.core.reference_resolver.models import (
    FailureReason,
    PropertyBag,
    ResolutionFailure,
    ResolutionOutcome,
    ResolutionResult,
    ResolutionTask,
)
from post_kind_engine.core.reference_resolver.url_resolver import ResourceResolver, UrlResolver

logger = logging.getLogger(__name__)


class ResolutionOrchestrator:
    """
    Orchestrates detection, resolution and merging for one property bag.

    The bag passed to `process` is owned by the call until it returns:
    resolution runs in worker threads that never touch it, and all writes
    happen afterwards on the calling thread.
    """

    def __init__(
        self,
        resolver: Optional[ResourceResolver] = None,
        detector: Optional[ReferenceDetector] = None,
        encoding: Optional[PropertyEncoding] = None,
        max_workers: int = MAX_CONCURRENT_RESOLUTIONS,
    ):
        """
        Initialize the orchestrator with its collaborators.

        Args:
            resolver: Component resolving URLs into jf2 documents
            detector: Component building the work list
            encoding: Native encoding of the bags this orchestrator processes
            max_workers: Maximum resolutions in flight for one item
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.resolver = resolver or UrlResolver()
        self.detector = detector or ReferenceDetector()
        self.encoding = encoding or Jf2Encoding()
        self.max_workers = max_workers

    def process(self, bag: PropertyBag) -> ResolutionResult:
        """
        Resolve every reference property of a bag.

        Args:
            bag: Decoded property bag; it is updated in place

        Returns:
            ResolutionResult with the (possibly partially) enriched bag and
            one failure record per URL left unresolved

        Raises:
            ValueError: If bag is not a mapping
        """
        if not isinstance(bag, dict):
            raise ValueError("bag must be a dict")

        if is_query_request(bag):
            logger.debug("Query request, skipping reference resolution")
            return ResolutionResult(bag=bag)

        tasks, skipped = self.detector.scan(bag)
        if not tasks:
            return ResolutionResult(bag=bag, skipped=skipped)

        logger.info(f"Resolving {len(tasks)} reference URLs")
        outcomes = self._resolve_all(tasks)

        result = ResolutionResult(bag=bag, skipped=skipped)
        for task, outcome in zip(tasks, outcomes):
            if outcome.ok:
                try:
                    self._apply(bag, task, outcome.document)
                    result.resolved.append(task.location)
                    logger.debug(f"Merged citation into {task.location}")
                    continue
                except EncodingError as e:
                    outcome = ResolutionOutcome.failure(FailureReason.ENCODING, str(e))
                except ValueError as e:
                    outcome = ResolutionOutcome.failure(FailureReason.ENCODING, f"Could not merge: {e}")

            failure = ResolutionFailure(
                url=task.url,
                property=task.property,
                index=task.index,
                reason=outcome.reason or FailureReason.FETCH,
                message=outcome.message,
            )
            logger.warning(f"Could not resolve {task.location} ({task.url}): {failure.reason.value}: {failure.message}")
            result.failures.append(failure)

        logger.info(f"Resolution complete: {len(result.resolved)} resolved, {len(result.failures)} failed")
        return result

    def process_request(self, request: Dict[str, Any]) -> ResolutionResult:
        """
        Resolve references in a full Micropub request.

        Requests carrying `q`, or without a `properties` mapping, are returned
        untouched with no failures.

        Args:
            request: Decoded request, e.g. {"type": ["h-entry"], "properties": {...}}

        Returns:
            ResolutionResult whose `bag` is the request itself
        """
        if not isinstance(request, dict):
            raise ValueError("request must be a dict")
        if is_query_request(request) or not isinstance(request.get("properties"), dict):
            return ResolutionResult(bag=request)

        inner = self.process(request["properties"])
        return ResolutionResult(bag=request, failures=inner.failures, resolved=inner.resolved, skipped=inner.skipped)

    def _resolve_all(self, tasks: List[ResolutionTask]) -> List[ResolutionOutcome]:
        if len(tasks) == 1 or self.max_workers == 1:
            return [self._resolve_one(task) for task in tasks]

        workers = min(self.max_workers, len(tasks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="resolve") as executor:
            return list(executor.map(self._resolve_one, tasks))

    def _resolve_one(self, task: ResolutionTask) -> ResolutionOutcome:
        try:
            outcome = self.resolver.resolve(task.url)
        except Exception as e:
            logger.error(f"Resolver raised for {task.url}: {e}", exc_info=True)
            return ResolutionOutcome.failure(FailureReason.FETCH, f"Resolver error: {e}")

        if outcome.ok and not isinstance(outcome.document, dict):
            return ResolutionOutcome.failure(FailureReason.PARSE, "Resolver returned no document")
        if outcome.ok and not outcome.document.get("type"):
            return ResolutionOutcome.failure(FailureReason.NO_CLASSIFICATION, "Resolved document has no type")
        return outcome

    def _apply(self, bag: PropertyBag, task: ResolutionTask, document: Dict[str, Any]) -> None:
        citation = downgrade(normalize_jf2(document))
        key = task.property.value
        bag[key] = merge_resolved(bag[key], task, citation, self.encoding)
