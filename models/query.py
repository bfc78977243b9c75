from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .enums import QueryStatusEnum


class Query(BaseModel):
    """
    A member's question from the "Ask Us" tab.

    user_name is copied from the asker's profile when the question is created so the
    admin list does not need a join.
    """
    id: str
    user_id: str
    user_name: str
    question: str
    response: Optional[str] = None
    status: QueryStatusEnum = QueryStatusEnum.PENDING
    submitted_at: Optional[datetime] = None
    answered_at: Optional[datetime] = None
    answered_by: Optional[str] = None
