"""
Resource resolution component.

Turns a URL into a classified jf2 document: fetch the resource over HTTP,
parse microformats2 (or OpenGraph metadata as a fallback, or a JSON body),
and report every problem as a typed failure instead of raising.

Features:
- requests Session with timeout, user agent and body size limit
- Redirects followed one hop at a time, each target validated before it is requested
- microformats2 parsing with BeautifulSoup (h-entry, h-cite, h-review, h-card, ...)
- OpenGraph / <title> fallback for pages without microformats
- jf2 and mf2 JSON bodies
- On-disk caching of successful resolutions via cache_manager
- Per-host spacing and 429/503 retry via rate_limiter
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup, Tag

from post_kind_engine.core.reference_resolver.cache_manager import ResolutionCache, get_cache
from post_kind_engine.core.reference_resolver.config import (
    ALLOWED_PORTS,
    FETCH_TIMEOUT,
    MAX_RESPONSE_BYTES,
    USER_AGENT,
)
from post_kind_engine.core.reference_resolver.detector import validate_url
from post_kind_engine.core.reference_resolver.encoding import Mf2Encoding, normalize_jf2
from post_kind_engine.core.reference_resolver.models import (
    FailureReason,
    RawDocument,
    ResolutionOutcome,
)
from post_kind_engine.core.reference_resolver.rate_limiter import SharedRateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "url_resolver"

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
JSON_CONTENT_TYPES = ("application/json", "application/mf2+json", "application/jf2+json")

REDIRECT_STATUS_CODES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 5

# Root classes in the order they are preferred when a page has several
ROOT_CLASSES = ("h-entry", "h-review", "h-event", "h-recipe", "h-product", "h-cite", "h-card")


class FetchError(Exception):
    """The resource could not be retrieved."""


class FetchTimeout(FetchError):
    """The resource did not respond in time."""


class ParseError(Exception):
    """The retrieved body could not be interpreted."""


class NoClassificationError(Exception):
    """The resource was readable but no type could be discovered."""


class ResourceResolver:
    """Interface for anything that can resolve a URL into a ResolutionOutcome."""

    def resolve(self, url: str) -> ResolutionOutcome:
        """
        Resolve a URL.

        Implementations must not raise for network or parse problems; those
        are returned as failures.
        """
        raise NotImplementedError


class UrlResolver(ResourceResolver):
    """
    Fetches and classifies remote resources.

    The two stages can be used on their own (`fetch`, `parse`); `resolve`
    runs both and converts their exceptions into failures.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = FETCH_TIMEOUT,
        max_bytes: int = MAX_RESPONSE_BYTES,
        user_agent: str = USER_AGENT,
        cache: Optional[ResolutionCache] = None,
        use_cache: bool = True,
        rate_limiter: Optional[SharedRateLimiter] = None,
        allowed_ports: Optional[Iterable[int]] = None,
    ):
        """
        Initialize the resolver.

        Args:
            session: HTTP session to use (a new one is created if None)
            timeout: Seconds before a fetch is abandoned
            max_bytes: Largest body accepted
            user_agent: User-Agent header sent with every request
            cache: Cache for successful resolutions (uses global if None)
            use_cache: Whether to read and write the cache
            rate_limiter: Per-host limiter (uses global if None)
            allowed_ports: Explicit ports accepted on the URL and every redirect
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.user_agent = user_agent
        self.use_cache = use_cache
        self.cache = (cache or get_cache()) if use_cache else cache
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.allowed_ports = frozenset(allowed_ports) if allowed_ports is not None else ALLOWED_PORTS
        self.mf2 = Mf2Encoding()

    # --- Resolution ---

    def resolve(self, url: str) -> ResolutionOutcome:
        """
        Fetch and parse a URL into a jf2 document.

        Args:
            url: URL to resolve

        Returns:
            A successful outcome with the jf2 document, or a failure with its reason
        """
        if self.use_cache and self.cache is not None:
            cached = self.cache.get(CACHE_NAMESPACE, url)
            if cached is not None:
                logger.debug(f"✓ Resolved {url} from cache")
                return ResolutionOutcome.success(cached)

        try:
            raw = self.fetch(url)
            document = self.parse(raw)
        except FetchTimeout as e:
            return ResolutionOutcome.failure(FailureReason.TIMEOUT, f"Timed out fetching {url}: {e}")
        except FetchError as e:
            return ResolutionOutcome.failure(FailureReason.FETCH, f"Could not fetch {url}: {e}")
        except ParseError as e:
            return ResolutionOutcome.failure(FailureReason.PARSE, f"Could not parse {url}: {e}")
        except NoClassificationError as e:
            return ResolutionOutcome.failure(FailureReason.NO_CLASSIFICATION, f"No type found for {url}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error resolving {url}: {e}", exc_info=True)
            return ResolutionOutcome.failure(FailureReason.PARSE, f"Unexpected error resolving {url}: {e}")

        if self.use_cache and self.cache is not None:
            self.cache.set(CACHE_NAMESPACE, url, document)
        logger.debug(f"→ Resolved {url} as {document.get('type')}")
        return ResolutionOutcome.success(document)

    # --- Fetching ---

    def fetch(self, url: str) -> RawDocument:
        """
        Retrieve a URL, following redirects by hand.

        Every hop is checked with validate_url before it is requested, so a
        public page cannot redirect the fetch to a local address.

        Raises:
            FetchTimeout: If the request timed out
            FetchError: On network errors, HTTP errors, unsafe or too many
                redirects, unsupported content types or bodies larger than
                max_bytes
        """
        current_url = url
        for _ in range(MAX_REDIRECTS + 1):
            if not validate_url(current_url, self.allowed_ports):
                raise FetchError(f"Refusing to fetch {current_url!r}")

            response = self._request(current_url)
            location = response.headers.get("Location")
            if response.status_code not in REDIRECT_STATUS_CODES or not location:
                return self._read_document(response, current_url)

            response.close()
            next_url = urljoin(current_url, location)
            logger.debug(f"{current_url} redirects to {next_url}")
            current_url = next_url

        raise FetchError(f"More than {MAX_REDIRECTS} redirects")

    def _request(self, url: str) -> requests.Response:
        host = urlsplit(url).hostname or ""
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/mf2+json;q=0.9,application/json;q=0.8,*/*;q=0.1",
        }

        def request_call() -> requests.Response:
            return self.session.get(url, headers=headers, timeout=self.timeout, stream=True, allow_redirects=False)

        try:
            return self.rate_limiter.execute_with_retry(host, request_call)
        except requests.exceptions.Timeout as e:
            raise FetchTimeout(str(e)) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(str(e)) from e

    def _read_document(self, response: requests.Response, url: str) -> RawDocument:
        try:
            if response.status_code >= 400:
                raise FetchError(f"HTTP {response.status_code}")

            content_type_header = response.headers.get("Content-Type", "text/html")
            content_type = content_type_header.split(";")[0].strip().lower()
            if not self._is_supported_content_type(content_type):
                raise FetchError(f"Unsupported content type {content_type!r}")

            body = self._read_body(response)
            # requests falls back to ISO-8859-1 for text/* without a charset
            encoding = "utf-8"
            if "charset=" in content_type_header.lower() and response.encoding:
                encoding = response.encoding
            try:
                text = body.decode(encoding, errors="replace")
            except LookupError:
                text = body.decode("utf-8", errors="replace")

            return RawDocument(
                url=url,
                content_type=content_type,
                text=text,
                status_code=response.status_code,
            )
        finally:
            response.close()

    def _is_supported_content_type(self, content_type: str) -> bool:
        if content_type in HTML_CONTENT_TYPES or content_type in JSON_CONTENT_TYPES:
            return True
        return content_type.startswith("application/") and content_type.endswith("+json")

    def _read_body(self, response: requests.Response) -> bytes:
        chunks: List[bytes] = []
        size = 0
        try:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                size += len(chunk)
                if size > self.max_bytes:
                    raise FetchError(f"Response larger than {self.max_bytes} bytes")
                chunks.append(chunk)
        except requests.exceptions.Timeout as e:
            raise FetchTimeout(str(e)) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(str(e)) from e
        return b"".join(chunks)

    # --- Parsing ---

    def parse(self, raw: RawDocument) -> Dict[str, Any]:
        """
        Classify a fetched body into a normalized jf2 document.

        Raises:
            ParseError: If the body is empty or malformed
            NoClassificationError: If nothing identifies what the resource is
        """
        if not raw.text or not raw.text.strip():
            raise ParseError("Empty response body")

        if raw.content_type in HTML_CONTENT_TYPES:
            document = self._parse_html(raw)
        else:
            document = self._parse_json(raw)

        if not isinstance(document.get("type"), str) or not document["type"]:
            raise NoClassificationError("Document has no type")
        document.setdefault("url", raw.url)
        return normalize_jf2(document)

    def _parse_json(self, raw: RawDocument) -> Dict[str, Any]:
        try:
            data = json.loads(raw.text)
        except ValueError as e:
            raise ParseError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ParseError("JSON body is not an object")

        if isinstance(data.get("items"), list):
            for item in data["items"]:
                if isinstance(item, dict) and isinstance(item.get("type"), list) and "properties" in item:
                    return self.mf2.decode(item)
            raise NoClassificationError("mf2 JSON has no items")

        if isinstance(data.get("type"), str):
            if data["type"] == "feed" and isinstance(data.get("children"), list) and data["children"]:
                first = data["children"][0]
                if isinstance(first, dict):
                    return dict(first)
            return dict(data)

        raise NoClassificationError("JSON body is neither jf2 nor mf2")

    def _parse_html(self, raw: RawDocument) -> Dict[str, Any]:
        try:
            soup = BeautifulSoup(raw.text, "lxml")
        except Exception as e:
            raise ParseError(f"Invalid HTML: {e}") from e

        base_url = raw.url
        base = soup.find("base", href=True)
        if base is not None:
            base_url = urljoin(raw.url, base["href"])

        root = self._find_root(soup)
        if root is not None:
            return self._parse_mf2_item(root, base_url)
        return self._parse_metadata(soup, base_url)

    def _find_root(self, soup: BeautifulSoup) -> Optional[Tag]:
        for root_class in ROOT_CLASSES:
            found = soup.find(class_=root_class)
            if found is not None:
                return found
        return None

    @staticmethod
    def _root_types(tag: Tag) -> List[str]:
        return [c for c in tag.get("class", []) if c.startswith("h-")]

    def _owner(self, tag: Tag) -> Optional[Tag]:
        parent = tag.parent
        while parent is not None and isinstance(parent, Tag):
            if self._root_types(parent):
                return parent
            parent = parent.parent
        return None

    def _property_elements(self, root: Tag, class_name: str) -> List[Tag]:
        return [el for el in root.find_all(class_=class_name) if self._owner(el) is root]

    @staticmethod
    def _text(tag: Tag) -> str:
        if tag.name == "abbr" and tag.get("title"):
            return tag["title"].strip()
        if tag.name == "data" and tag.get("value"):
            return tag["value"].strip()
        return " ".join(tag.get_text(" ").split())

    def _url_value(self, tag: Tag, base_url: str) -> str:
        for attr in ("href", "src", "data", "poster"):
            if tag.get(attr):
                return urljoin(base_url, tag[attr])
        if tag.get("value"):
            return urljoin(base_url, tag["value"])
        return urljoin(base_url, self._text(tag))

    def _parse_mf2_item(self, root: Tag, base_url: str) -> Dict[str, Any]:
        root_type = self._root_types(root)[0][2:]
        document: Dict[str, Any] = {"type": root_type}

        def add(key: str, value: Any) -> None:
            if value in (None, "", {}):
                return
            document.setdefault(key, []).append(value)

        for el in self._property_elements(root, "p-name"):
            add("name", self._text(el))
        for el in self._property_elements(root, "u-url"):
            add("url", self._url_value(el, base_url))
        for el in self._property_elements(root, "u-uid"):
            add("uid", self._url_value(el, base_url))
        for el in self._property_elements(root, "dt-published"):
            add("published", (el.get("datetime") or self._text(el)).strip())
        for el in self._property_elements(root, "dt-updated"):
            add("updated", (el.get("datetime") or self._text(el)).strip())
        for el in self._property_elements(root, "p-summary"):
            add("summary", self._text(el))
        for el in self._property_elements(root, "e-content"):
            html = "".join(str(child) for child in el.contents).strip()
            add("content", {"html": html, "text": " ".join(el.get_text(" ").split())})
        for el in self._property_elements(root, "u-photo"):
            add("photo", self._url_value(el, base_url))
        for el in self._property_elements(root, "p-category"):
            add("category", self._text(el))
        for el in self._property_elements(root, "p-rating"):
            add("rating", self._text(el))
        for el in self._property_elements(root, "p-author"):
            if "h-card" in el.get("class", []):
                add("author", self._parse_mf2_item(el, base_url))
            else:
                add("author", self._text(el))
        for el in self._property_elements(root, "p-publication"):
            add("publication", self._text(el))

        return document

    def _meta(self, soup: BeautifulSoup, *names: str) -> Optional[str]:
        for name in names:
            tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
            if tag is not None and tag.get("content", "").strip():
                return tag["content"].strip()
        return None

    def _parse_metadata(self, soup: BeautifulSoup, base_url: str) -> Dict[str, Any]:
        name = self._meta(soup, "og:title", "twitter:title")
        if not name and soup.title is not None and soup.title.string:
            name = " ".join(soup.title.string.split())
        summary = self._meta(soup, "og:description", "twitter:description", "description")

        if not name and not summary:
            raise NoClassificationError("No microformats or metadata found")

        og_type = (self._meta(soup, "og:type") or "").lower()
        document: Dict[str, Any] = {"type": "card" if og_type == "profile" else "entry"}
        if name:
            document["name"] = name
        if summary:
            document["summary"] = summary

        canonical = soup.find("link", rel="canonical", href=True)
        url = self._meta(soup, "og:url") or (canonical["href"] if canonical is not None else None)
        if url:
            document["url"] = urljoin(base_url, url)

        photo = self._meta(soup, "og:image", "twitter:image")
        if photo:
            document["photo"] = urljoin(base_url, photo)
        published = self._meta(soup, "article:published_time")
        if published:
            document["published"] = published
        author = self._meta(soup, "article:author", "author")
        if author:
            document["author"] = author
        publication = self._meta(soup, "og:site_name")
        if publication:
            document["publication"] = publication

        return document
