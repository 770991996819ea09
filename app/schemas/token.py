# app/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # user id of the caller
    org_id: Optional[str] = Field(default=None, alias="orgId")
    exp: int

    model_config = {"populate_by_name": True}
