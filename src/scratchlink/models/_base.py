"""Base model for documents fetched from the release host.

Every remote document model inherits from :class:`LinkBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase manifest keys map
  automatically to snake_case fields.
* Frozen instances; a fetched document is never mutated.
* ``extra="ignore"`` so new upstream keys do not break older brokers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LinkBaseModel(BaseModel):
    """Base for manifest and release-listing models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )
