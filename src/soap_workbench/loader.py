"""Descriptor acquisition: fetch, parse, and expand imports breadth-first.

The loader turns a :class:`~soap_workbench.models.ParseRequest` into an
ordered list of :class:`ResolvedDocument`. It implements a pragmatic BFS over
a work queue seeded with the primary source followed by every additional
source, following ``wsdl:import`` and ``xsd:import`` / ``xsd:include``
locations when requested.

Traversal rules:
    1. A normalized absolute URI (compared case-insensitively) is fetched at
       most once per parse, however often it is referenced.
    2. Import locations resolve against the URI of the document that
       declares them, not against the primary source.
    3. Empty or non-absolute locations are ignored rather than reported.
    4. Any fetch or parse failure aborts the whole load; no partial document
       list is ever returned.

Example::

    import asyncio
    from soap_workbench.loader import DocumentLoader, HttpxFetcher
    from soap_workbench.models import ParseRequest

    async def main():
        async with HttpxFetcher() as fetcher:
            documents = await DocumentLoader(fetcher).load(
                ParseRequest("https://example.com/service?wsdl")
            )
        print([d.source for d in documents])

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Iterator, List, Optional, Protocol, Set
from urllib.parse import urljoin, urlsplit, urlunsplit
from urllib.request import url2pathname

import httpx

from .errors import DocumentParseError, SourceFetchError
from .models import ParseRequest
from .xmltree import WSDL_NS, XS_NS, NamespaceScopes, XmlTree, local_name, parse_xml

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "soap-workbench"


class Fetcher(Protocol):
    """Text-fetch-by-URI capability consumed by the loader."""

    async def fetch_text(self, uri: str) -> str:  # pragma: no cover - protocol
        ...


@dataclass
class ResolvedDocument:
    """A fetched descriptor: absolute source URI plus its parsed tree."""

    source: str
    tree: XmlTree

    @property
    def root(self) -> ET.Element:
        return self.tree.root

    @property
    def scopes(self) -> NamespaceScopes:
        return self.tree.scopes

    @property
    def root_name(self) -> str:
        return local_name(self.root.tag)

    @property
    def target_namespace(self) -> Optional[str]:
        return self.root.get("targetNamespace")

    def is_service_description(self) -> bool:
        """True for ``wsdl:definitions`` roots (local name, case-insensitive)."""
        return self.root_name.lower() == "definitions"

    def is_schema(self) -> bool:
        """True for standalone ``xs:schema`` documents."""
        return self.root.tag == f"{XS_NS}schema"

    def import_locations(self) -> Iterator[str]:
        """Yield raw import/include locations declared in this document."""
        for node in self.root.iter(f"{WSDL_NS}import"):
            location = node.get("location") or node.get("schemaLocation")
            if location:
                yield location
        for schema in self.root.iter(f"{XS_NS}schema"):
            for node in schema:
                if node.tag in (f"{XS_NS}import", f"{XS_NS}include"):
                    location = node.get("schemaLocation")
                    if location:
                        yield location


def normalize_uri(value: Optional[str]) -> Optional[str]:
    """Return a normalized absolute URI, or ``None`` for unusable locations.

    Scheme and host are lower-cased and an empty HTTP path becomes ``/``.
    Relative references, bare paths, and empty strings yield ``None``.

    Example:
        >>> normalize_uri("HTTP://Example.COM?wsdl")
        'http://example.com/?wsdl'
        >>> normalize_uri("schemas/types.xsd") is None
        True
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    # Single-letter schemes are Windows drive letters, not URIs.
    if len(scheme) < 2:
        return None
    if scheme == "file":
        return urlunsplit((scheme, parts.netloc.lower(), parts.path or "/", parts.query, parts.fragment))
    if not parts.netloc:
        return None
    path = parts.path
    if scheme in ("http", "https") and not path:
        path = "/"
    return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, parts.fragment))


def is_local_uri(uri: Optional[str]) -> bool:
    """True when ``uri`` normalizes to a ``file://`` location."""
    normalized = normalize_uri(uri)
    return normalized is not None and normalized.startswith("file:")


def resolve_location(base_uri: str, location: Optional[str]) -> Optional[str]:
    """Resolve an import location against the declaring document's URI."""
    if location is None or not location.strip():
        return None
    location = location.strip()
    absolute = normalize_uri(location)
    if absolute is not None:
        return absolute
    return normalize_uri(urljoin(base_uri, location))


class HttpxFetcher:
    """Default :class:`Fetcher` backed by :class:`httpx.AsyncClient`.

    ``file://`` URIs are read from the local filesystem, which is convenient
    for working on descriptors before they are published. Services that take
    locations from untrusted callers should pass ``allow_file_sources=False``.

    Args:
        client: Optional pre-configured client. When omitted, one is created on
            ``__aenter__`` (or lazily) and closed by :meth:`aclose`.
        timeout: Request timeout in seconds.
        follow_redirects: Whether HTTP redirects are followed.
        user_agent: ``User-Agent`` header sent with every request.
        allow_file_sources: Whether ``file://`` URIs may be read at all.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        allow_file_sources: bool = True,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.user_agent = user_agent
        self.allow_file_sources = allow_file_sources

    async def __aenter__(self) -> "HttpxFetcher":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                headers={"User-Agent": self.user_agent},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_text(self, uri: str) -> str:
        """Fetch ``uri`` and return its decoded text.

        Raises:
            SourceFetchError: On HTTP error status, transport failure, or a
                local file that is disabled, unreadable or not UTF-8.
        """
        if is_local_uri(uri):
            if not self.allow_file_sources:
                raise SourceFetchError(f"Local file sources are disabled: {uri}", uri=uri)
            path = Path(url2pathname(urlsplit(uri).path))
            try:
                return await asyncio.to_thread(path.read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise SourceFetchError(f"Failed to read {uri}: {e}", uri=uri) from e

        client = self._ensure_client()
        try:
            response = await client.get(uri)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(
                f"Failed to fetch {uri}: HTTP {e.response.status_code}", uri=uri
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SourceFetchError(f"Failed to fetch {uri}: {e}", uri=uri) from e
        return response.text


class DocumentLoader:
    """Breadth-first loader over a request's sources and their imports."""

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher

    async def load(self, request: ParseRequest) -> List[ResolvedDocument]:
        """Fetch and parse every reachable document, in BFS enqueue order.

        Raises:
            SourceFetchError: A location could not be fetched.
            DocumentParseError: A fetched document is not well-formed XML.
        """
        documents: List[ResolvedDocument] = []
        visited: Set[str] = set()
        queue: Deque[str] = deque()

        def enqueue(uri: Optional[str]) -> None:
            if uri is None:
                return
            key = uri.lower()
            if key in visited:
                return
            visited.add(key)
            queue.append(uri)

        for location in request.locations():
            enqueue(normalize_uri(location))

        while queue:
            current = queue.popleft()
            document = await self._load_single(current)
            documents.append(document)

            if not request.follow_imports:
                continue

            for location in document.import_locations():
                resolved = resolve_location(current, location)
                if resolved is None:
                    logger.debug(f"Ignoring unusable import location {location!r} in {current}")
                enqueue(resolved)

        logger.info(f"Loaded {len(documents)} descriptor document(s)")
        return documents

    async def _load_single(self, uri: str) -> ResolvedDocument:
        logger.info(f"Fetching descriptor {uri}")
        try:
            text = await self.fetcher.fetch_text(uri)
        except SourceFetchError:
            logger.error(f"Failed to fetch descriptor {uri}")
            raise
        except (httpx.HTTPError, OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to fetch descriptor {uri}: {e}")
            raise SourceFetchError(f"Failed to fetch {uri}: {e}", uri=uri) from e
        try:
            tree = parse_xml(text)
        except ET.ParseError as e:
            logger.error(f"Descriptor {uri} is not well-formed XML: {e}")
            raise DocumentParseError(f"Failed to parse {uri}: {e}", uri=uri) from e
        return ResolvedDocument(source=uri, tree=tree)
