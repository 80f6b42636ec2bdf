"""Domain models for tenant-scoped retrieval results."""

from __future__ import annotations

import operator
from typing import Any, Callable

from pydantic import BaseModel, Field

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "in": lambda actual, expected: actual in expected,
    "nin": lambda actual, expected: actual not in expected,
}


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Filters narrow a search further; they are always combined with the
    tenant filter and can never widen a search beyond one organization.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"document_id"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate the filter against a metadata dict."""
        compare = _OPERATORS.get(self.operator)
        if compare is None:
            raise ValueError(f"Unsupported filter operator: {self.operator!r}")
        if self.field not in metadata:
            return False
        try:
            return compare(metadata[self.field], self.value)
        except TypeError:
            return False


class SearchHit(BaseModel):
    """A single retrieved chunk with its similarity score."""

    id: str
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def org_id(self) -> str | None:
        return self.metadata.get("org_id")

    @property
    def document_id(self) -> str:
        return self.metadata.get("document_id", "unknown")

    @property
    def doc_name(self) -> str:
        return self.metadata.get("doc_name", "")
