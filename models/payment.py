from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .enums import PaymentStatusEnum
from .plan import Plan
from .user import Identity


class Payment(BaseModel):
    """
    A UPI payment submitted by a member for a plan, awaiting verification.

    The portal does no payment processing: members pay outside the app and submit the
    transaction id plus an optional screenshot. Only an administrator moves the status
    from PENDING to VERIFIED or REJECTED, stamping verified_at / verified_by.
    """
    id: str
    user_id: str
    plan_id: str
    amount: float
    transaction_id: str
    payment_screenshot_url: Optional[str] = None
    status: PaymentStatusEnum = PaymentStatusEnum.PENDING
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    # Embedded resources, present when read with `user:users(*)` / `plan:plans(*)`.
    user: Optional[Identity] = None
    plan: Optional[Plan] = None

    def __repr__(self):
        return f'<Payment {self.transaction_id} - {self.amount} - {self.status.value}>'
