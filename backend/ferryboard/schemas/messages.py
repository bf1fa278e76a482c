from typing import Literal

from pydantic import BaseModel


class UpdateAvailable(BaseModel):
    type: Literal["UPDATE_AVAILABLE"] = "UPDATE_AVAILABLE"
    current: str
    new: str


class ControlMessage(BaseModel):
    type: Literal["SKIP_WAITING", "CHECK_VERSION", "CLEAR_CACHES"]


class ControlAck(BaseModel):
    success: bool
    error: str | None = None
