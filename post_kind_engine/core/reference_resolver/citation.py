"""
Citation handling: downgrading resolved entries and merging them back into
the property they came from.
"""

import copy
from typing import Any, Dict

from post_kind_engine.core.reference_resolver.encoding import PropertyEncoding
from post_kind_engine.core.reference_resolver.models import ResolutionTask

ENTRY_TYPE = "entry"
CITE_TYPE = "cite"


def downgrade(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn a full entry into a citation.

    A resource embedded as the target of a reference property is cited
    material, never a second standalone entry. Other types are kept.
    The input document is not modified.
    """
    downgraded = dict(document)
    if downgraded.get("type") == ENTRY_TYPE:
        downgraded["type"] = CITE_TYPE
    return downgraded


def merge_resolved(
    original_value: Any,
    task: ResolutionTask,
    document: Dict[str, Any],
    encoding: PropertyEncoding,
) -> Any:
    """
    Encode a resolved citation and merge it into the property's current value.

    - List element (task.index set): the element is replaced by the encoded document.
    - Structured single value: shallow merge, resolved keys win, original-only keys survive.
    - Bare scalar: the encoded document replaces it.

    Args:
        original_value: Current value of the property in the bag
        task: The task that produced the document
        document: Downgraded jf2 document
        encoding: Native encoding of the bag

    Returns:
        The new property value, with the same cardinality as the original

    Raises:
        EncodingError: If the document cannot be encoded losslessly
        ValueError: If the task position no longer exists in the value
    """
    encoded = encoding.encode_checked(document)

    if task.index is not None:
        if not isinstance(original_value, list) or task.index >= len(original_value):
            raise ValueError(f"{task.location} is not present in the property value")
        updated = list(original_value)
        updated[task.index] = encoded
        return updated

    if isinstance(original_value, dict):
        return encoding.merge(copy.deepcopy(original_value), encoded)

    return encoded
