"""Shared base model definitions for Vidnotes domain objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class VidnotesBaseModel(BaseModel):
    """Base model configured for Vidnotes-wide defaults."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class WireModel(BaseModel):
    """Base model for camelCase envelopes exchanged over the message protocol."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, object]:
        """Serialize using wire aliases, omitting unset optional fields."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = ["VidnotesBaseModel", "WireModel"]
