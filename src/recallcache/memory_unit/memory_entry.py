"""
Memory Entry for the semantic memory cache

Represents one durable fact together with its embedding and access bookkeeping.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domains import DEFAULT_DOMAIN
from ..embeddings import coerce_embedding


class MemoryEntry(BaseModel):
    """
    A stored fact.

    Serialised with camelCase keys so the persisted file is a flat JSON array
    of records such as ``{"id", "fact", "embedding", "source", "domain",
    "createdAt", "accessCount", "lastAccessed"}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    fact: str
    embedding: List[float]
    source: str = "unknown"
    domain: str = DEFAULT_DOMAIN
    created_at: str = Field(alias="createdAt")
    access_count: int = Field(default=0, alias="accessCount")
    last_accessed: Optional[str] = Field(default=None, alias="lastAccessed")

    @field_validator("embedding", mode="before")
    @classmethod
    def _coerce_embedding(cls, value: Any) -> List[float]:
        return coerce_embedding(value)

    @field_validator("domain", mode="before")
    @classmethod
    def _default_domain(cls, value: Any) -> str:
        return value or DEFAULT_DOMAIN

    def to_record(self) -> dict:
        """Return the JSON-ready persisted form of this entry."""
        return self.model_dump(by_alias=True, exclude_none=True)
