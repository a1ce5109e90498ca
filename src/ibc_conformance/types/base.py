"""Reusable base models for the harness."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """
    A strict, immutable pydantic base model.

    Used for values the harness owns: chain configuration, topology
    specs, snapshots. Unknown fields are rejected so typos in YAML
    topology files surface at load time instead of at run time.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_default=True,
        extra="forbid",
        frozen=True,
    )

    def copy(self: Self, **kwargs: Any) -> Self:
        """Create a copy of the model with the updated fields that are validated."""
        return self.__class__(**(self.model_dump(exclude_unset=True) | kwargs))


class ResponseModel(BaseModel):
    """
    A lenient, immutable model for decoding node REST responses.

    Cosmos SDK nodes encode 64-bit integers as JSON strings and add
    fields between releases. Lax mode coerces ``"1000"`` to ``1000``,
    and unknown fields are ignored so newer nodes still decode.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )
