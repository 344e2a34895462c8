"""Shared pydantic configuration for request and response schemas."""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """Responses built straight from ORM rows (`model_validate(audit)`)."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BaseRequestSchema(BaseModel):
    """Request bodies. Unknown keys are ignored."""
    model_config = ConfigDict(extra='ignore')
