"""Domain models for GraphQL requests and responses.

Both are opaque to the toolkit: it never inspects `data`, it only
delivers, retries and caches whole envelopes.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

_OPERATION_NAME_RE = re.compile(r"(?:query|mutation)\s+(\w+)")

ANONYMOUS_OPERATION = "Anonymous"


@dataclass(frozen=True)
class GraphQLRequest:
    """One GraphQL document plus its variables."""
    query: str
    variables: Dict[str, Any] = field(default_factory=dict)
    cacheable: bool = False

    @property
    def operation_name(self) -> str:
        """Name declared after `query`/`mutation`, or 'Anonymous'."""
        match = _OPERATION_NAME_RE.search(self.query)
        return match.group(1) if match else ANONYMOUS_OPERATION

    def to_payload(self) -> Dict[str, Any]:
        """Wire body for the POST request."""
        return {"query": self.query, "variables": dict(self.variables)}


@dataclass
class GraphQLResponse:
    """Parsed `{data, errors}` envelope."""
    data: Optional[Any] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GraphQLResponse":
        errors = []
        for raw in payload.get("errors") or []:
            if isinstance(raw, Mapping):
                errors.append({
                    "message": raw.get("message", "Unknown error"),
                    "extensions": raw.get("extensions"),
                })
            else:
                errors.append({"message": str(raw), "extensions": None})
        return cls(data=payload.get("data"), errors=errors)
