from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    FUNCTION = "function"


class FunctionCall(BaseModel):
    """
    A single tool invocation requested by the model.
    """

    name: str = Field(..., description="Tool name from the offered catalog")
    args: Dict[str, Any] = Field(default_factory=dict, description="Decoded JSON arguments")


class FunctionResponse(BaseModel):
    name: str = Field(..., description="Tool name the response belongs to")
    response: Dict[str, Any] = Field(default_factory=dict, description="JSON object result")


class Part(BaseModel):
    """
    Exactly one of text, function_call or function_response is set.
    """

    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    function_response: Optional[FunctionResponse] = None

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> "Part":
        populated = [
            v
            for v in (self.text, self.function_call, self.function_response)
            if v is not None
        ]
        if len(populated) != 1:
            raise ValueError("a part must carry exactly one of text, function_call, function_response")
        return self


class Message(BaseModel):
    """
    One entry of the conversation log.
    """

    role: Role
    parts: List[Part] = Field(..., min_length=1)

    @classmethod
    def from_text(cls, role: Role, text: str) -> "Message":
        return cls(role=role, parts=[Part(text=text)])

    @classmethod
    def from_function_call(cls, call: FunctionCall) -> "Message":
        return cls(role=Role.MODEL, parts=[Part(function_call=call)])

    @classmethod
    def from_function_response(cls, name: str, response: Dict[str, Any]) -> "Message":
        return cls(
            role=Role.FUNCTION,
            parts=[Part(function_response=FunctionResponse(name=name, response=response))],
        )

    @property
    def first_text(self) -> Optional[str]:
        """Text of the first part, or None when the first part is not text."""
        return self.parts[0].text


__all__ = ["FunctionCall", "FunctionResponse", "Message", "Part", "Role"]
