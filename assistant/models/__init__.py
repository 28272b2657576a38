from .message import FunctionCall, FunctionResponse, Message, Part, Role
from .thread import SerializedMessage

__all__ = [
    "FunctionCall",
    "FunctionResponse",
    "Message",
    "Part",
    "Role",
    "SerializedMessage",
]
