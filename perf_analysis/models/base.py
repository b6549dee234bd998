"""Base model configuration for value objects."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable base model shared by metrics and analysis results."""

    model_config = ConfigDict(frozen=True)
