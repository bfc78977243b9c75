import enum


class _PendingLifecycle:
    """
    Shared lifecycle rule for every status enumeration in the portal.

    Each record starts as PENDING and moves exactly once to one of the other members.
    There is no way back to PENDING and no move between two decided states.
    """

    @property
    def is_pending(self):
        return self is type(self).PENDING

    def can_transition_to(self, target):
        """
        Checks whether a record currently in this status may be moved to `target`.

        Args:
            target: A member of the same enumeration.

        Returns:
            bool: True only for PENDING -> any non-PENDING member of the same enum.
        """
        if not isinstance(target, type(self)):
            return False
        return self.is_pending and not target.is_pending

    @classmethod
    def decisions(cls):
        """Members an administrator can move a pending record to."""
        return [member for member in cls if not member.is_pending]


class RoleEnum(enum.Enum):
    """Role of an identity. Only ADMIN unlocks the admin dashboard."""
    USER = 'user'
    ADMIN = 'admin'


class IdentityStatusEnum(_PendingLifecycle, enum.Enum):
    """Approval state of a registered identity."""
    PENDING = 'pending'    # Registered, waiting for an administrator.
    APPROVED = 'approved'  # May use the member dashboard.
    REJECTED = 'rejected'  # Registration declined.


class PaymentStatusEnum(_PendingLifecycle, enum.Enum):
    """Verification state of a submitted payment."""
    PENDING = 'pending'
    VERIFIED = 'verified'
    REJECTED = 'rejected'


class JoinRequestStatusEnum(_PendingLifecycle, enum.Enum):
    """Processing state of a join request sent from the public page."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class QueryStatusEnum(_PendingLifecycle, enum.Enum):
    """State of a member's question."""
    PENDING = 'pending'
    ANSWERED = 'answered'
