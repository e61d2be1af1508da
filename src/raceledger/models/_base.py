"""Base model for ledger records.

Every ledger-facing model inherits from :class:`LedgerModel` which
provides:

* ``alias_generator=to_camel`` so camelCase ledger keys map
  automatically to snake_case fields.
* Frozen instances, so the cache can hand out references without
  readers ever observing a partial update.
* A ``model_validator(mode="before")`` that maps positional ledger
  tuples onto field names via ``_POSITIONAL_FIELDS``.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class LedgerModel(BaseModel):
    """Base for models parsed from ledger records."""

    _POSITIONAL_FIELDS: ClassVar[tuple[str, ...]] = ()
    """camelCase keys matching the element order of a positional record."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _from_positional(cls, values: Any) -> Any:
        """Accept ``[a, b, c]`` records as well as ``{"a": ..}`` objects."""
        if not isinstance(values, (list, tuple)):
            return values
        keys: tuple[str, ...] = getattr(cls, "_POSITIONAL_FIELDS", ())
        if not keys:
            return values
        return dict(zip(keys, values, strict=False))
