# telehealth/schemas/common/common.py
from pydantic import BaseModel
from typing import Any, Dict, Optional

__all__ = ["ErrorResponse", "MessageResponse", "HealthResponse"]

class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[Any] = None
    error: Any

class MessageResponse(BaseModel):
    message: str

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    database: Dict[str, Any]
    auth: Dict[str, Any]
