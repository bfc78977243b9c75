from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class Plan(BaseModel):
    """
    A membership plan from the `plans` catalog (e.g. Daily, Weekly, Monthly).

    Read-only from the portal; the catalog is maintained directly in the backing store.
    """
    id: str
    name: str
    price: float
    period: str = ''
    # Feature bullet points shown on the plan card.
    features: List[str] = []
    # Highlights the card as "Most Popular".
    is_popular: bool = False
    created_at: Optional[datetime] = None

    @property
    def display_price(self):
        """Price formatted in rupees with thousands separators, e.g. '₹1,400'."""
        return f"₹{self.price:,.0f}"

    def __repr__(self):
        return f'<Plan {self.name} - {self.price}>'
