"""
Data models for the reference resolver.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Decoded property bag of a content item: property name -> scalar, list or nested document
PropertyBag = Dict[str, Any]

# Key marking a Micropub read request (q=config, q=source, ...)
QUERY_INDICATOR = "q"


# --- Enums ---

class ReferenceProperty(Enum):
    """
    Properties whose value points at an external resource.

    Only these properties are resolved; every other property passes through untouched.
    """
    BOOKMARK_OF = "bookmark-of"
    LIKE_OF = "like-of"
    FAVORITE_OF = "favorite-of"
    IN_REPLY_TO = "in-reply-to"
    READ_OF = "read-of"
    LISTEN_OF = "listen-of"
    WATCH_OF = "watch-of"

    @classmethod
    def from_key(cls, key: str) -> Optional["ReferenceProperty"]:
        for prop in cls:
            if prop.value == key:
                return prop
        return None


class ResolutionStatus(Enum):
    """Status of a single URL resolution."""
    SUCCESS = "success"
    FAILED = "failed"


class FailureReason(Enum):
    """
    Why a URL could not be turned into a citation.

    - FETCH: network error, HTTP error status, unsupported or oversized body
    - TIMEOUT: the fetch did not complete in time
    - PARSE: the body could not be interpreted
    - NO_CLASSIFICATION: the resource had no discoverable type
    - ENCODING: the resolved document could not be re-encoded into the bag
    """
    FETCH = "fetch"
    TIMEOUT = "timeout"
    PARSE = "parse"
    NO_CLASSIFICATION = "no_classification"
    ENCODING = "encoding"


@dataclass(frozen=True)
class ResolutionTask:
    """One candidate URL found in a reference property."""
    property: ReferenceProperty
    index: Optional[int]  # Position inside a list value, None for single values
    url: str
    order: int = 0  # Position in the detector's work list

    @property
    def location(self) -> str:
        if self.index is None:
            return self.property.value
        return f"{self.property.value}[{self.index}]"


@dataclass
class ResolutionOutcome:
    """Tagged result of resolving one URL: a jf2 document or a failure reason."""
    status: ResolutionStatus
    document: Optional[Dict[str, Any]] = None
    reason: Optional[FailureReason] = None
    message: str = ""

    @classmethod
    def success(cls, document: Dict[str, Any]) -> "ResolutionOutcome":
        return cls(status=ResolutionStatus.SUCCESS, document=document)

    @classmethod
    def failure(cls, reason: FailureReason, message: str) -> "ResolutionOutcome":
        return cls(status=ResolutionStatus.FAILED, reason=reason, message=message)

    @property
    def ok(self) -> bool:
        return self.status == ResolutionStatus.SUCCESS


@dataclass
class ResolutionFailure:
    """Diagnostic record for a URL that was left unresolved."""
    url: str
    property: ReferenceProperty
    index: Optional[int]
    reason: FailureReason
    message: str

    @property
    def location(self) -> str:
        if self.index is None:
            return self.property.value
        return f"{self.property.value}[{self.index}]"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "property": self.property.value,
            "index": self.index,
            "reason": self.reason.value,
            "message": self.message,
        }


@dataclass
class ResolutionResult:
    """The complete output of one orchestrator run."""
    bag: PropertyBag
    failures: List[ResolutionFailure] = field(default_factory=list)
    resolved: List[str] = field(default_factory=list)  # Locations that were enriched
    skipped: int = 0  # Candidates rejected by URL validation


@dataclass
class RawDocument:
    """A fetched HTTP body before parsing."""
    url: str  # Final URL after redirects
    content_type: str
    text: str
    status_code: int = 200
