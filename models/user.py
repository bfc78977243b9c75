from datetime import datetime
from typing import List, Optional

from flask_login import UserMixin # For Flask-Login integration (e.g., current_user).
from pydantic import BaseModel

from .enums import RoleEnum, IdentityStatusEnum
from .user_session import UserSession


class Identity(BaseModel, UserMixin):
    """
    Represents a registered person's account: one row of the `users` table.

    The row id is the Supabase auth user id, and email is the unique external handle.
    Rows are created with status PENDING at the end of the registration wizard and are
    only moved to APPROVED or REJECTED by an administrator. UserMixin provides the
    methods Flask-Login expects (is_authenticated, get_id, ...).
    """

    # --- Basic Identity Information ---
    id: str
    email: str
    full_name: str = ''

    # --- Profile (registration step 2) ---
    phone: Optional[str] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    location: Optional[str] = None
    occupation: Optional[str] = None

    # --- Government ID (registration step 3) ---
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    id_file_url: Optional[str] = None

    # --- Organizational billing (registration step 4) ---
    needs_reimbursement: bool = False
    organization_name: Optional[str] = None
    gst_number: Optional[str] = None
    organization_location: Optional[str] = None

    # --- Access control ---
    role: RoleEnum = RoleEnum.USER
    status: IdentityStatusEnum = IdentityStatusEnum.PENDING

    # --- Timestamps ---
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Present only when the row was read with the embedded `user_sessions(*)` resource.
    user_sessions: List[UserSession] = []

    model_config = {"from_attributes": True}

    @property
    def is_admin(self):
        return self.role is RoleEnum.ADMIN

    @property
    def is_approved(self):
        return self.status is IdentityStatusEnum.APPROVED

    @property
    def first_name(self):
        """First word of the display name, used in dashboard greetings."""
        return (self.full_name.split() or [self.email.split('@')[0]])[0]

    def __repr__(self):
        return f'<Identity {self.email} ({self.role.value}, {self.status.value})>'
