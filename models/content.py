from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Content(BaseModel):
    """
    An editable text document shown on the member dashboard.

    Keyed by a short id ('rules', 'guide', 'wifi'). Read by everyone, edited by administrators.
    The body column is called `content` in the table.
    """
    id: str
    title: str = ''
    content: str = ''
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
