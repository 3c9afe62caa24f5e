"""Resolve scalar value constraints into descriptions and example values.

Given an element declaration and/or a resolved type name, the resolver walks
simple type restrictions and lists (recursively through named base types)
and produces a :class:`~soap_workbench.models.ValueMetadata`:

* ``description`` - the base type description followed by one summary per
  facet (``"Text; Allowed values: A, B"``), joined with ``"; "``.
* ``example`` - a synthesized value. Facets are consulted in a fixed order
  (enumeration, length, numeric bounds, pattern) and the first one able to
  produce a value wins. The canonical example of a built-in base type is only
  used when no facet produced one.
* ``allowed_values`` - enumeration literals, base type values first.

Resolution never fails: unknown names degrade to ``"Type: <local>"`` and a
simple type that (directly or transitively) restricts itself yields empty
metadata at the point of the cycle.

Example:
    resolver = ValueMetadataResolver(tables.index)
    metadata = resolver.describe(element=declaration)
    metadata.description   # "Text; Exact length: 2"
    metadata.example       # "10"
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .models import EMPTY_METADATA, ValueMetadata
from .schema_index import SchemaIndex
from .xmltree import XS_NS, XS_URI, QName

logger = logging.getLogger(__name__)

# local name -> (description, example)
BUILTIN_TYPES: Dict[str, Tuple[str, Optional[str]]] = {
    "string": ("Text", "SampleText"),
    "normalizedString": ("Text (no line breaks)", "SampleText"),
    "token": ("Tokenized text", "TokenValue"),
    "boolean": ("Boolean (true/false)", "true"),
    "decimal": ("Decimal number", "123.45"),
    "integer": ("Integer", "123"),
    "int": ("32-bit integer", "123"),
    "long": ("64-bit integer", "123456789"),
    "short": ("16-bit integer", "1200"),
    "byte": ("8-bit signed integer", "64"),
    "positiveInteger": ("Positive integer", "1"),
    "nonNegativeInteger": ("Non-negative integer", "0"),
    "double": ("Double precision number", "123.45"),
    "float": ("Floating point number", "123.45"),
    "base64Binary": ("Base64 encoded binary", "U2FtcGxl"),
    "anyURI": ("URI", "https://api.example.com"),
}

# Built-ins whose example is the current UTC clock.
TEMPORAL_TYPES: Dict[str, Tuple[str, str]] = {
    "date": ("Date (YYYY-MM-DD)", "%Y-%m-%d"),
    "dateTime": ("Date & time (ISO 8601)", "%Y-%m-%dT%H:%M:%SZ"),
    "time": ("Time (HH:MM:SS)", "%H:%M:%S"),
}

MAX_LENGTH_EXAMPLE = 10
# Upper bound for any synthesized length-based example.
MAX_SAMPLE_LENGTH = 256
ENUMERATION_SUMMARY_LIMIT = 5

_DIGIT_RUN = re.compile(r"(?:\\d|\[0-9\])\{(\d+)\}")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _facet(restriction: ET.Element, name: str) -> Optional[str]:
    node = restriction.find(f"{XS_NS}{name}")
    if node is None:
        return None
    value = (node.get("value") or "").strip()
    return value or None


def _as_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _digits_sample(length: int) -> str:
    length = min(length, MAX_SAMPLE_LENGTH)
    return "1" + "0" * max(0, length - 1)


def _requires_digits(pattern: str) -> bool:
    return "\\d" in pattern or "[0-9]" in pattern


def _dedupe(values: List[str]) -> Tuple[str, ...]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return tuple(result)


def describe_enumeration(values: List[str]) -> str:
    """Summarize enumeration literals, listing at most five.

    Example:
        >>> describe_enumeration(["A", "B", "C", "D", "E", "F"])
        'Allowed values: A, B, C, D, E, ...'
    """
    summary = ", ".join(values[:ENUMERATION_SUMMARY_LIMIT])
    if len(values) > ENUMERATION_SUMMARY_LIMIT:
        summary += ", ..."
    return f"Allowed values: {summary}"


def describe_length(restriction: ET.Element) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(summary, example)`` for length / minLength / maxLength facets."""
    length = _facet(restriction, "length")
    if length is not None:
        exact = _as_int(length)
        return f"Exact length: {length}", _digits_sample(exact) if exact is not None else None

    min_length = _facet(restriction, "minLength")
    max_length = _facet(restriction, "maxLength")
    if min_length is None and max_length is None:
        return None, None

    if min_length is not None and max_length is not None:
        summary = f"Length between {min_length} and {max_length}"
    elif min_length is not None:
        summary = f"Minimum length: {min_length}"
    else:
        summary = f"Maximum length: {max_length}"

    target = _as_int(min_length)
    if target is None or target < 1:
        upper = _as_int(max_length)
        target = min(upper, MAX_LENGTH_EXAMPLE) if upper is not None else target
    example = _digits_sample(target) if target is not None and target > 0 else None
    return summary, example


def describe_numeric(restriction: ET.Element) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(summary, example)`` for inclusive/exclusive bound facets."""
    min_inclusive = _facet(restriction, "minInclusive")
    max_inclusive = _facet(restriction, "maxInclusive")
    min_exclusive = _facet(restriction, "minExclusive")
    max_exclusive = _facet(restriction, "maxExclusive")

    parts: List[str] = []
    if min_inclusive is not None and max_inclusive is not None:
        parts.append(f"Range: {min_inclusive} to {max_inclusive}")
    else:
        if min_inclusive is not None:
            parts.append(f"Minimum: {min_inclusive}")
        if max_inclusive is not None:
            parts.append(f"Maximum: {max_inclusive}")
    if min_exclusive is not None:
        parts.append(f"Greater than {min_exclusive}")
    if max_exclusive is not None:
        parts.append(f"Less than {max_exclusive}")

    example = min_inclusive or max_inclusive or min_exclusive
    return ("; ".join(parts) if parts else None), example


def pattern_example(pattern: str, restriction: ET.Element) -> Optional[str]:
    """Synthesize a value for digit-oriented patterns.

    Example:
        >>> pattern_example(r"\\d{5}", ET.Element("restriction"))
        '10000'
    """
    if not _requires_digits(pattern):
        return None
    match = _DIGIT_RUN.search(pattern)
    target = _as_int(match.group(1)) if match else None
    if target is None:
        target = _as_int(_facet(restriction, "length")) or _as_int(_facet(restriction, "minLength"))
    if target:
        return _digits_sample(target)
    return "12345"


class ValueMetadataResolver:
    """Compute :class:`ValueMetadata` against a merged :class:`SchemaIndex`.

    Args:
        index: Schema declarations of the current parse.
        clock: Callable returning the current UTC time, used for date/time
            examples.
    """

    def __init__(self, index: SchemaIndex, clock: Callable[[], datetime] = _utc_now) -> None:
        self.index = index
        self.clock = clock

    def describe(
        self,
        element: Optional[ET.Element] = None,
        type_name: Optional[QName] = None,
    ) -> ValueMetadata:
        """Describe the value of an element declaration or of a named type.

        Args:
            element: ``xs:element`` declaration, if one is known.
            type_name: Already-resolved type name. When given alongside an
                element it takes precedence over the element's ``type``.
        """
        if element is not None:
            inline = element.find(f"{XS_NS}simpleType")
            if inline is not None:
                return self.describe_simple_type(inline)
            if type_name is None:
                type_name = self.index.resolve(element, element.get("type"))

        if type_name is None:
            return EMPTY_METADATA

        named = self.index.find_simple_type(type_name)
        if named is not None:
            return self.describe_simple_type(named)
        return self.describe_builtin(type_name)

    def describe_builtin(self, type_name: Optional[QName]) -> ValueMetadata:
        if type_name is None:
            return EMPTY_METADATA
        namespace, local = type_name
        if namespace == XS_URI:
            if local in BUILTIN_TYPES:
                description, example = BUILTIN_TYPES[local]
                return ValueMetadata(description, example)
            if local in TEMPORAL_TYPES:
                description, fmt = TEMPORAL_TYPES[local]
                return ValueMetadata(description, self.clock().strftime(fmt))
        return ValueMetadata(f"Type: {local}")

    def describe_simple_type(
        self,
        simple_type: ET.Element,
        visited: FrozenSet[ET.Element] = frozenset(),
    ) -> ValueMetadata:
        """Describe an ``xs:simpleType`` (restriction or list)."""
        if simple_type in visited:
            logger.debug(f"Simple type cycle detected at {simple_type.get('name') or '(anonymous)'}")
            return EMPTY_METADATA
        visited = visited | {simple_type}

        restriction = simple_type.find(f"{XS_NS}restriction")
        if restriction is not None:
            return self._describe_restriction(restriction, visited)

        item_list = simple_type.find(f"{XS_NS}list")
        if item_list is not None:
            return self._describe_list(item_list, visited)

        return EMPTY_METADATA

    def _describe_base(
        self, restriction: ET.Element, visited: FrozenSet[ET.Element]
    ) -> Tuple[ValueMetadata, bool]:
        """Return the base metadata and whether it came from a simple type."""
        inline = restriction.find(f"{XS_NS}simpleType")
        if inline is not None:
            return self.describe_simple_type(inline, visited), True
        base_name = self.index.resolve(restriction, restriction.get("base"))
        named = self.index.find_simple_type(base_name)
        if named is not None:
            return self.describe_simple_type(named, visited), True
        return self.describe_builtin(base_name), False

    def _describe_restriction(
        self, restriction: ET.Element, visited: FrozenSet[ET.Element]
    ) -> ValueMetadata:
        base, derived = self._describe_base(restriction, visited)

        facets: List[str] = []
        allowed: List[str] = list(base.allowed_values)
        example = base.example if derived else None

        enumerations = [
            value.strip()
            for value in (node.get("value") for node in restriction.findall(f"{XS_NS}enumeration"))
            if value and value.strip()
        ]
        if enumerations:
            allowed.extend(enumerations)
            facets.append(describe_enumeration(enumerations))
            if example is None:
                example = enumerations[0]

        length_summary, length_example = describe_length(restriction)
        if length_summary:
            facets.append(length_summary)
            if example is None:
                example = length_example

        numeric_summary, numeric_example = describe_numeric(restriction)
        if numeric_summary:
            facets.append(numeric_summary)
            if example is None:
                example = numeric_example

        pattern = next(
            (
                node.get("value")
                for node in restriction.findall(f"{XS_NS}pattern")
                if node.get("value") and node.get("value").strip()
            ),
            None,
        )
        if pattern:
            facets.append(f"Pattern: {pattern}")
            if example is None:
                example = pattern_example(pattern, restriction)

        if example is None:
            example = base.example

        parts = ([base.description] if base.description else []) + facets
        return ValueMetadata(
            description="; ".join(parts) if parts else None,
            example=example,
            allowed_values=_dedupe(allowed),
        )

    def _describe_list(self, item_list: ET.Element, visited: FrozenSet[ET.Element]) -> ValueMetadata:
        inline = item_list.find(f"{XS_NS}simpleType")
        item_name = self.index.resolve(item_list, item_list.get("itemType"))
        if inline is not None:
            item = self.describe_simple_type(inline, visited)
        else:
            named = self.index.find_simple_type(item_name)
            if named is not None:
                item = self.describe_simple_type(named, visited)
            else:
                item = self.describe_builtin(item_name)

        item_example = item.chosen_example()
        item_label = item.description or (item_name[1] if item_name else "values")
        return ValueMetadata(
            description=f"Space-separated list of {item_label}",
            example=f"{item_example} {item_example}" if item_example is not None else None,
            allowed_values=item.allowed_values,
        )
