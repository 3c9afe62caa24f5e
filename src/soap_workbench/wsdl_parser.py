"""Parse WSDL descriptors (plus manifests) into an operation catalog.

This module ties the pipeline together:

1. :class:`~soap_workbench.loader.DocumentLoader` fetches the requested
   sources and, optionally, everything they import.
2. Documents are classified by root element: ``definitions`` (any case) is a
   service description, anything else is treated as a flat manifest.
3. Service descriptions (and imported standalone schemas) are folded into
   merged tables, then every binding operation is described.
4. Manifests are parsed independently.
5. Structured descriptors come first, manifest descriptors second, alongside
   the list of every resolved source.

Typical usage:
        import asyncio
        from soap_workbench.models import ParseRequest
        from soap_workbench.wsdl_parser import WsdlParser, ParserConfig

        parser = WsdlParser(config=ParserConfig(max_depth=8))
        result = asyncio.run(
            parser.parse(ParseRequest("https://example.com/CountryInfo.wso?WSDL"))
        )
        for operation in result.operations:
            print(operation.name, operation.soap_action)

        # Synchronous callers
        result = parse_wsdl_sync(ParseRequest("https://example.com/service?wsdl"))

Notes:
* The parse is a coroutine; cancelling the task aborts the in-flight fetch and
  no result is produced.
* Every parse owns its tables and visited set. Nothing is cached across
  calls, so concurrent parses never share mutable state.
* Ordering and de-duplication for display are left to callers
  (:func:`soap_workbench.presentation.present_operations`).
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, fields
from typing import Any, List, Optional

from . import __version__
from .descriptors import DescriptorBuilder
from .errors import DescriptorError
from .loader import DocumentLoader, Fetcher, HttpxFetcher, ResolvedDocument
from .manifest import parse_manifest
from .models import OperationDescriptor, ParseRequest, ParseResult
from .monitoring import PerformanceMonitor, get_monitor
from .schema_index import build_tables

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SOAP_WORKBENCH_PARSER_CONFIG"


@dataclass
class ParserConfig:
    """Configuration for descriptor parsing behavior.

    Args:
        max_depth: Maximum example expansion depth below a parameter root;
            deeper content becomes ``{...}``.
        fetch_timeout: Per-request timeout (seconds) of the default fetcher.
        follow_redirects: Whether the default fetcher follows HTTP redirects.
        user_agent: ``User-Agent`` sent by the default fetcher.
        allow_file_sources: Whether the default fetcher reads ``file://`` URIs.
    """

    max_depth: int = 6  # Maximum example nesting depth
    fetch_timeout: float = 30.0  # Seconds per document fetch
    follow_redirects: bool = True  # Follow HTTP redirects
    user_agent: str = f"soap-workbench/{__version__}"
    allow_file_sources: bool = True  # Read file:// locations

    @classmethod
    def from_string(cls, config_str: str, **defaults: Any) -> "ParserConfig":
        """Build a config from ``key=value`` pairs separated by commas.

        Keys starting with ``max_`` are integers, keys ending with
        ``_timeout`` are floats, ``user_agent`` is kept verbatim and every
        other known key is a boolean. Unknown keys are ignored.
        ``defaults`` replace the field defaults before the pairs are applied.

        Example:
            >>> ParserConfig.from_string("max_depth=8, follow_redirects=false").max_depth
            8
        """
        config = cls(**defaults)
        known = {f.name for f in fields(cls)}

        for pair in config_str.split(","):
            if "=" not in pair:
                continue
            key, value = pair.split("=", 1)
            key = key.strip()
            value = value.strip()
            if key not in known:
                logger.warning(f"Ignoring unknown parser option {key!r}")
                continue
            if key.startswith("max_"):
                setattr(config, key, int(value))
            elif key.endswith("_timeout"):
                setattr(config, key, float(value))
            elif key == "user_agent":
                setattr(config, key, value)
            else:
                setattr(config, key, value.lower() == "true")

        return config

    @classmethod
    def from_env(cls, **defaults: Any) -> "ParserConfig":
        """Read :data:`CONFIG_ENV_VAR` (empty or unset gives the defaults)."""
        return cls.from_string(os.getenv(CONFIG_ENV_VAR, ""), **defaults)

    def create_fetcher(self) -> HttpxFetcher:
        return HttpxFetcher(
            timeout=self.fetch_timeout,
            follow_redirects=self.follow_redirects,
            user_agent=self.user_agent,
            allow_file_sources=self.allow_file_sources,
        )


class WsdlParser:
    """Turn a :class:`ParseRequest` into a :class:`ParseResult`.

    Args:
        fetcher: Text fetcher used by the loader. When omitted, an
            :class:`HttpxFetcher` is created from ``config`` for each parse and
            closed afterwards.
        config: Parser configuration (defaults to :class:`ParserConfig`).
        monitor: Metrics sink (defaults to the process-wide monitor).

    Example:
        parser = WsdlParser(fetcher=my_fetcher)
        result = await parser.parse(ParseRequest("https://example.com/a?wsdl"))
        if result.is_empty:
            print("No operations were discovered")
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        config: Optional[ParserConfig] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or ParserConfig()
        self.monitor = monitor or get_monitor()

    async def parse(self, request: ParseRequest) -> ParseResult:
        """Load, merge, and describe every operation reachable from ``request``.

        Raises:
            SourceFetchError: A document could not be fetched.
            DocumentParseError: A document is not well-formed XML.
        """
        started = time.time()
        try:
            if self.fetcher is not None:
                documents = await DocumentLoader(self.fetcher).load(request)
            else:
                async with self.config.create_fetcher() as fetcher:
                    documents = await DocumentLoader(fetcher).load(request)
            result = self.describe(documents)
        except DescriptorError:
            self.monitor.record_parse(
                time.time() - started, succeeded=False, source=request.primary_source
            )
            raise

        self.monitor.record_parse(
            time.time() - started,
            documents=len(result.sources),
            operations=len(result.operations),
            source=request.primary_source,
        )
        logger.info(
            f"Parsed {len(result.sources)} document(s) into {len(result.operations)} operation(s)"
        )
        return result

    def describe(self, documents: List[ResolvedDocument]) -> ParseResult:
        """Describe already-loaded documents (no I/O)."""
        service_documents = [d for d in documents if d.is_service_description()]
        manifest_documents = [
            d for d in documents if not d.is_service_description() and not d.is_schema()
        ]

        tables = build_tables(documents)
        builder = DescriptorBuilder(tables, max_depth=self.config.max_depth)

        operations: List[OperationDescriptor] = []
        for document in service_documents:
            operations.extend(builder.describe_document(document))
        for document in manifest_documents:
            operations.extend(parse_manifest(document))

        return ParseResult(operations=operations, sources=[d.source for d in documents])


async def parse_wsdl(
    request: ParseRequest,
    fetcher: Optional[Fetcher] = None,
    config: Optional[ParserConfig] = None,
) -> ParseResult:
    """Convenience wrapper around :meth:`WsdlParser.parse`."""
    return await WsdlParser(fetcher=fetcher, config=config).parse(request)


def parse_wsdl_sync(
    request: ParseRequest,
    fetcher: Optional[Fetcher] = None,
    config: Optional[ParserConfig] = None,
) -> ParseResult:
    """Run one parse on a fresh event loop (for synchronous callers)."""
    return asyncio.run(parse_wsdl(request, fetcher=fetcher, config=config))
