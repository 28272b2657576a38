from typing import Literal

from pydantic import BaseModel, Field


class SerializedMessage(BaseModel):
    """
    Persisted form of a user/model text turn.
    """

    role: Literal["user", "model"] = Field(..., description="Author of the turn")
    content: str = Field(..., description="Text of the turn's first part")


__all__ = ["SerializedMessage"]
