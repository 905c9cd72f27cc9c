"""
Pydantic base models for request/response validation.

The API and the stored documents both use camelCase field names; Python code
uses snake_case attributes and the alias generator bridges the two.
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

# Passwords, codes and tokens are compared as submitted
VerbatimStr = Annotated[str, StringConstraints(strip_whitespace=False)]


class CamelModel(BaseModel):
    """Base for request bodies: accepts camelCase (or snake_case) keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class StrictCamelModel(CamelModel):
    """Rejects unknown keys; used where the body shape selects a variant."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )
