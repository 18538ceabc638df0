"""Shared pydantic base model and strict field types."""

from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt

# Real numbers only; booleans and numeric strings are rejected
StrictNumber: TypeAlias = StrictInt | StrictFloat


class StrictModel(BaseModel):
    """Base model that forbids extra fields."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
