from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RejectionResponse(CamelModel):
    index: int
    reason: str


class ErrorResponse(CamelModel):
    error: str
    rejected: Optional[list[RejectionResponse]] = None
    details: Optional[list[dict]] = None
