from pydantic import BaseModel
from typing import Optional, Any


class CallResult(BaseModel):
    """Outcome of a call to a sibling service. Clients return this instead of raising."""
    success: bool
    status_code: Optional[int] = None
    detail: Optional[Any] = None
    data: Optional[Any] = None

    @property
    def failed(self) -> bool:
        return not self.success
