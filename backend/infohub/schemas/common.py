from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also works)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BulkAction(CamelModel):
    action: str
    ids: List[int] = Field(..., min_length=1, max_length=500)
