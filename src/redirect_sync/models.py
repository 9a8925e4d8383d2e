"""Record types shared by the connectors and the sync engine."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(str, Enum):
    """Remote operation a run performs; the value names its checkpoint namespace."""

    IMPORT = "imports"
    DELETE = "deletes"


class RedirectType(str, Enum):
    """HTTP semantics of a redirect."""

    PERMANENT = "PERMANENT"
    TEMPORARY = "TEMPORARY"


class Redirect(BaseModel):
    """A single redirect rule, one row of an import file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_: str = Field(alias="from", min_length=1)
    to: str = Field(min_length=1)
    type: RedirectType
    end_date: str | None = Field(default=None, alias="endDate")

    @property
    def key(self) -> str:
        return self.from_

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the service's field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RedirectPath(BaseModel):
    """A redirect source path, one row of a delete file."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_: str = Field(alias="from", min_length=1)

    @property
    def key(self) -> str:
        return self.from_


RECORD_MODELS: dict[OperationKind, type[BaseModel]] = {
    OperationKind.IMPORT: Redirect,
    OperationKind.DELETE: RedirectPath,
}
