# Row shapes of the tables in the backing store, plus their status enumerations.
from .enums import (RoleEnum, IdentityStatusEnum, PaymentStatusEnum,
                    JoinRequestStatusEnum, QueryStatusEnum)
from .user_session import UserSession
from .user import Identity
from .plan import Plan
from .payment import Payment
from .join_request import JoinRequest
from .query import Query
from .content import Content
