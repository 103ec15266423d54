from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int = Field(examples=[400])
    message: Union[str, list[str]] = Field(examples=["Validation failed"])
    timestamp: str = Field(examples=["2024-01-15T10:30:00.000Z"])
    path: str = Field(examples=["/api/users"])
    method: str = Field(examples=["POST"])
    error: Optional[str] = Field(default=None, examples=["Bad Request"])


class ValidationErrorResponse(ErrorResponse):
    message: list[str] = Field(
        examples=[["body.email: value is not a valid email address"]]
    )
