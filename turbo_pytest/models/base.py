"""Base model configuration for wire and configuration data."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable base model; unknown fields from newer workers are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")
