"""Shared pydantic base models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model exchanged with clients and the model service using camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(CamelModel):
    """Immutable camelCase model."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)
