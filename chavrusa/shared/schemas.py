"""Shared Pydantic models"""

from typing import Optional

from pydantic import BaseModel, field_validator


class TrimmedRequest(BaseModel):
    """Request body whose string fields are trimmed; non-strings read as empty"""

    @field_validator("*", mode="before")
    @classmethod
    def trim_strings(cls, v):
        return v.strip() if isinstance(v, str) else ""


class OkResponse(BaseModel):
    ok: bool = True
    warning: Optional[str] = None
