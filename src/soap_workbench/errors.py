"""Exception hierarchy for descriptor acquisition failures.

Only failures that make the catalog untrustworthy are raised: a document that
cannot be fetched or cannot be parsed aborts the whole parse, because a
missing import silently produces an incomplete schema otherwise. Unresolvable
names (messages, elements, types) are not errors; they degrade to
placeholders at the point of use.
"""

from __future__ import annotations

from typing import Optional


class DescriptorError(Exception):
    """Base class for failures that abort a descriptor parse.

    Attributes:
        uri: Absolute source identifier involved in the failure, if known.
    """

    def __init__(self, message: str, uri: Optional[str] = None) -> None:
        super().__init__(message)
        self.uri = uri


class SourceFetchError(DescriptorError):
    """A descriptor location could not be retrieved (network, HTTP status, file)."""


class DocumentParseError(DescriptorError):
    """Retrieved descriptor text is not well-formed XML."""
