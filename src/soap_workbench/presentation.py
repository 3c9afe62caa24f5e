"""Display ordering for operation catalogs.

The parser returns descriptors in traversal order and never collapses
duplicates (the same operation is often bound twice, once per SOAP version).
User-facing layers call :func:`present_operations` to get a de-duplicated,
name-sorted list.
"""

from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from .models import OperationDescriptor


def operation_key(operation: OperationDescriptor) -> Tuple[str, str, str]:
    """Identity used for de-duplication (case-insensitive)."""
    return (
        operation.source.lower(),
        operation.name.lower(),
        operation.soap_action.lower(),
    )


def present_operations(operations: Iterable[OperationDescriptor]) -> List[OperationDescriptor]:
    """De-duplicate by source, name and SOAP action (first wins), then sort by name.

    Example:
        >>> ops = [OperationDescriptor("b"), OperationDescriptor("A"), OperationDescriptor("B")]
        >>> [op.name for op in present_operations(ops)]
        ['A', 'b']
    """
    seen: Set[Tuple[str, str, str]] = set()
    unique: List[OperationDescriptor] = []
    for operation in operations:
        key = operation_key(operation)
        if key in seen:
            continue
        seen.add(key)
        unique.append(operation)
    return sorted(unique, key=lambda operation: operation.name.lower())
