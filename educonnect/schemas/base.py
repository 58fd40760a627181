"""
Base schemas shared by the booking core's input models.
"""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Strict base: forbid extras, validate defaults and assignments."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        validate_assignment=True,
    )
