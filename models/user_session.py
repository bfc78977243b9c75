from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserSession(BaseModel):
    """
    A check-in / check-out usage record of a member at the space.

    Created at check-in; check_out_time and duration_hours are filled in at check-out.
    """
    id: str
    user_id: str
    plan_id: str
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    duration_hours: Optional[float] = None
    created_at: Optional[datetime] = None

    @property
    def is_open(self):
        return self.check_out_time is None
