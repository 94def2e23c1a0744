"""Shared model configuration for camelCase wire format."""

from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from utils.timezone import to_utc

# Naive input is read as UTC so stored timestamps always compare.
UtcDatetime = Annotated[datetime, AfterValidator(to_utc)]


class CamelModel(BaseModel):
    """
    Base for every model that crosses the HTTP boundary.

    Attributes are snake_case in Python and camelCase on the wire. Input
    accepts either spelling; dump with by_alias=True for responses.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def stat_key(member: Enum) -> str:
    """Stats bucket key for an enum member: WALK_IN -> "walkIn"."""
    return to_camel(member.name.lower())
