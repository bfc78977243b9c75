from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .enums import JoinRequestStatusEnum


class JoinRequest(BaseModel):
    """A request to join the space, sent from the public page without an account."""
    id: str
    full_name: str
    email: str
    phone: str
    profession: str
    reason: str
    status: JoinRequestStatusEnum = JoinRequestStatusEnum.PENDING
    submitted_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
