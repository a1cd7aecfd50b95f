from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Credential:
    """Basic-auth credential for Prism Central."""

    username: str
    password: str = field(repr=False)

    def as_auth(self) -> tuple:
        return (self.username, self.password)


@dataclass
class PageRequest:
    """
    Body of a ``POST {resource}/list`` call.

    offset is the number of entities already fetched, length the page size.
    """

    kind: str
    offset: int
    length: int

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.length <= 0:
            raise ValueError(f"length must be > 0, got {self.length}")

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind, "offset": self.offset, "length": self.length}


@dataclass
class PageResponse:
    """One page of a list endpoint."""

    entities: List[Any]
    total_matches: int

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "PageResponse":
        data = data or {}
        entities = data.get("entities") or []
        metadata = data.get("metadata") or {}
        try:
            total = int(metadata.get("total_matches") or 0)
        except (TypeError, ValueError):
            total = 0
        return cls(entities=list(entities), total_matches=max(total, 0))


@dataclass
class CategoryValue:
    key: str
    value: str
    description: str = ""


@dataclass
class SecurityRuleSpec:
    """Desired network security rule scoped to a single category value."""

    name: str
    category_key: str
    category_value: str
    action: str = "MONITOR"
    description: str = ""
    app_type: Optional[str] = None
