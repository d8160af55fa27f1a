from typing import Any, Dict

from .share import CamelModel


class Health(CamelModel):
    status: str = "OK"
    message: str
    timestamp: str
    shares: int
    uploads: Dict[str, Any]
