"""
Data access façade over the Supabase tables and storage buckets.

Every screen reads and writes persistent records through `PortalAPI`; no view talks to
the client directly. The contract is deliberately thin:

- Mutating calls (and reads scoped to "my" records) resolve the authenticated user first
  and raise `NotAuthenticatedError` before any table is touched when there is none.
- Failures from the store (postgrest `APIError`, storage errors, network errors) are not
  caught here; they propagate unchanged so the view can tell the user to try again.
- List calls always return a list, empty when nothing matches.
- Status transitions stamp the time and the acting identity and are only applied to rows
  that are still pending.
"""

from datetime import datetime, timezone

from models import (Content, Identity, JoinRequest, JoinRequestStatusEnum, Payment,
                    PaymentStatusEnum, Plan, Query, QueryStatusEnum, RoleEnum,
                    IdentityStatusEnum, UserSession)
from utils.helpers import make_storage_name


class NotAuthenticatedError(Exception):
    """Raised when a call that needs a signed-in user is made without one."""

    def __init__(self, message='Not authenticated'):
        super().__init__(message)


class InvalidStatusTransitionError(ValueError):
    """Raised when a status change is not PENDING -> decision, or the row was already decided."""


def _utcnow_iso():
    return datetime.now(timezone.utc).isoformat()


class PortalAPI:
    """
    One method per persistent-entity operation.

    Args:
        client (supabase.Client): Client for the current request. Its auth session decides
                                  who "the current user" is.
    """

    def __init__(self, client):
        self._client = client

    # --- Internal helpers ---

    def _require_user(self):
        """
        Returns the Supabase auth user of the current session.

        Raises:
            NotAuthenticatedError: If the client holds no signed-in session.
        """
        session = self._client.auth.get_session()
        user = getattr(session, 'user', None) if session is not None else None
        if user is None:
            raise NotAuthenticatedError()
        return user

    def _insert_one(self, table, payload):
        response = self._client.table(table).insert(payload).execute()
        return response.data[0]

    def _transition(self, table, row_id, current_enum, target, stamp):
        """
        Moves a pending row to `target`, stamping `stamp` columns.

        The update is conditional on the row still being pending, so a decision made by
        another administrator in the meantime is never overwritten.

        Args:
            table (str): Table name.
            row_id (str): Primary key of the row.
            current_enum (type): Status enumeration of the table.
            target: Target member of `current_enum`.
            stamp (dict): Extra columns (timestamp, acting identity) to write.

        Returns:
            dict: The updated row.

        Raises:
            NotAuthenticatedError: No signed-in user.
            InvalidStatusTransitionError: Target not reachable, or the row is no longer pending.
        """
        if not current_enum.PENDING.can_transition_to(target):
            raise InvalidStatusTransitionError(
                f"Cannot move a {table} row from pending to {getattr(target, 'value', target)!r}.")

        payload = {'status': target.value}
        payload.update(stamp)
        response = (
            self._client.table(table)
            .update(payload)
            .eq('id', row_id)
            .eq('status', current_enum.PENDING.value)
            .execute()
        )
        if not response.data:
            raise InvalidStatusTransitionError(
                f"{table} row {row_id} is no longer pending; it was already decided.")
        return response.data[0]

    # --- Plans ---

    def list_plans(self):
        """Returns the plan catalog ordered by price (cheapest first)."""
        response = self._client.table('plans').select('*').order('price').execute()
        return [Plan.model_validate(row) for row in response.data or []]

    # --- Payments ---

    def create_payment(self, plan_id, amount, transaction_id, payment_screenshot_url=None):
        """Records a pending payment by the current user for `plan_id`."""
        user = self._require_user()
        row = self._insert_one('payments', {
            'user_id': user.id,
            'plan_id': plan_id,
            'amount': amount,
            'transaction_id': transaction_id,
            'payment_screenshot_url': payment_screenshot_url,
        })
        return Payment.model_validate(row)

    def list_payments(self, status=PaymentStatusEnum.PENDING):
        """Payments with the given status, newest first, with their user and plan embedded."""
        response = (
            self._client.table('payments')
            .select('*, user:users(*), plan:plans(*)')
            .eq('status', status.value)
            .order('submitted_at', desc=True)
            .execute()
        )
        return [Payment.model_validate(row) for row in response.data or []]

    def list_user_payments(self):
        """The current user's payments, newest first."""
        user = self._require_user()
        response = (
            self._client.table('payments')
            .select('*, plan:plans(*)')
            .eq('user_id', user.id)
            .order('submitted_at', desc=True)
            .execute()
        )
        return [Payment.model_validate(row) for row in response.data or []]

    def update_payment_status(self, payment_id, status):
        """Verifies or rejects a pending payment."""
        user = self._require_user()
        row = self._transition('payments', payment_id, PaymentStatusEnum, status, {
            'verified_at': _utcnow_iso(),
            'verified_by': user.id,
        })
        return Payment.model_validate(row)

    # --- Join requests ---

    def create_join_request(self, full_name, email, phone, profession, reason):
        """Stores a join request from the public page. No account is needed."""
        row = self._insert_one('join_requests', {
            'full_name': full_name,
            'email': email,
            'phone': phone,
            'profession': profession,
            'reason': reason,
        })
        return JoinRequest.model_validate(row)

    def list_join_requests(self, status=JoinRequestStatusEnum.PENDING):
        response = (
            self._client.table('join_requests')
            .select('*')
            .eq('status', status.value)
            .order('submitted_at', desc=True)
            .execute()
        )
        return [JoinRequest.model_validate(row) for row in response.data or []]

    def update_join_request_status(self, request_id, status):
        """Approves or rejects a pending join request."""
        user = self._require_user()
        row = self._transition('join_requests', request_id, JoinRequestStatusEnum, status, {
            'processed_at': _utcnow_iso(),
            'processed_by': user.id,
        })
        return JoinRequest.model_validate(row)

    # --- Queries ---

    def create_query(self, question):
        """
        Stores a question from the current user.

        The asker's display name is copied from their profile; 'Unknown User' is used if the
        profile has none.
        """
        user = self._require_user()
        profile = (
            self._client.table('users')
            .select('full_name')
            .eq('id', user.id)
            .execute()
        )
        user_name = (profile.data[0].get('full_name') if profile.data else None) or 'Unknown User'

        row = self._insert_one('queries', {
            'user_id': user.id,
            'user_name': user_name,
            'question': question,
        })
        return Query.model_validate(row)

    def list_user_queries(self):
        user = self._require_user()
        response = (
            self._client.table('queries')
            .select('*')
            .eq('user_id', user.id)
            .order('submitted_at', desc=True)
            .execute()
        )
        return [Query.model_validate(row) for row in response.data or []]

    def list_queries(self):
        """All questions from all members, newest first."""
        response = self._client.table('queries').select('*').order('submitted_at', desc=True).execute()
        return [Query.model_validate(row) for row in response.data or []]

    def respond_to_query(self, query_id, response_text):
        """Answers a pending question."""
        user = self._require_user()
        row = self._transition('queries', query_id, QueryStatusEnum, QueryStatusEnum.ANSWERED, {
            'response': response_text,
            'answered_at': _utcnow_iso(),
            'answered_by': user.id,
        })
        return Query.model_validate(row)

    # --- Content ---

    def list_content(self):
        response = self._client.table('content').select('*').order('id').execute()
        return [Content.model_validate(row) for row in response.data or []]

    def get_content(self, content_id):
        """Returns the content document with this id, or None."""
        response = self._client.table('content').select('*').eq('id', content_id).execute()
        return Content.model_validate(response.data[0]) if response.data else None

    def update_content(self, content_id, body):
        """Replaces the body of a content document."""
        user = self._require_user()
        response = (
            self._client.table('content')
            .update({
                'content': body,
                'updated_at': _utcnow_iso(),
                'updated_by': user.id,
            })
            .eq('id', content_id)
            .execute()
        )
        return Content.model_validate(response.data[0]) if response.data else None

    # --- Identities ---

    def create_identity(self, profile):
        """
        Inserts the profile row of a freshly signed-up identity with status PENDING.

        Args:
            profile (dict): Row values; must contain `id` (the auth user id) and `email`.
        """
        payload = dict(profile)
        payload['status'] = IdentityStatusEnum.PENDING.value
        payload['role'] = RoleEnum.USER.value
        return Identity.model_validate(self._insert_one('users', payload))

    def get_identity(self, identity_id):
        response = self._client.table('users').select('*').eq('id', identity_id).execute()
        return Identity.model_validate(response.data[0]) if response.data else None

    def list_pending_identities(self):
        """Registrations waiting for an administrator, newest first."""
        response = (
            self._client.table('users')
            .select('*')
            .eq('status', IdentityStatusEnum.PENDING.value)
            .order('created_at', desc=True)
            .execute()
        )
        return [Identity.model_validate(row) for row in response.data or []]

    def update_identity_status(self, identity_id, status):
        """Approves or rejects a pending registration."""
        self._require_user()
        row = self._transition('users', identity_id, IdentityStatusEnum, status, {
            'updated_at': _utcnow_iso(),
        })
        return Identity.model_validate(row)

    def list_approved_members(self):
        """Approved non-admin identities with their usage sessions embedded."""
        response = (
            self._client.table('users')
            .select('*, user_sessions(*)')
            .eq('status', IdentityStatusEnum.APPROVED.value)
            .eq('role', RoleEnum.USER.value)
            .order('created_at', desc=True)
            .execute()
        )
        return [Identity.model_validate(row) for row in response.data or []]

    # --- Files ---

    def upload_file(self, data, filename, content_type, bucket='uploads'):
        """
        Uploads `data` under a generated object name and returns its public URL.

        The name is '<milliseconds>-<random>.<original extension>', so two uploads never
        collide, and a retried upload creates a second object.

        Args:
            data (bytes): File contents.
            filename (str): Original file name; only its extension is kept.
            content_type (str): MIME type stored with the object.
            bucket (str, optional): Target bucket. Defaults to 'uploads'.

        Returns:
            str: Public retrieval URL.
        """
        object_name = make_storage_name(filename)
        storage = self._client.storage.from_(bucket)
        storage.upload(object_name, data, {'content-type': content_type})
        return storage.get_public_url(object_name)

    # --- Usage sessions ---

    def create_user_session(self, plan_id):
        """Checks the current user in under `plan_id`."""
        user = self._require_user()
        row = self._insert_one('user_sessions', {
            'user_id': user.id,
            'plan_id': plan_id,
            'check_in_time': _utcnow_iso(),
        })
        return UserSession.model_validate(row)

    def list_user_sessions(self):
        user = self._require_user()
        response = (
            self._client.table('user_sessions')
            .select('*')
            .eq('user_id', user.id)
            .order('created_at', desc=True)
            .execute()
        )
        return [UserSession.model_validate(row) for row in response.data or []]

    def close_user_session(self, session_id):
        """
        Checks the current user out of an open usage session.

        Returns:
            UserSession or None: The closed session, or None if no open session of the
                                 current user has this id.
        """
        user = self._require_user()
        response = (
            self._client.table('user_sessions')
            .select('*')
            .eq('id', session_id)
            .eq('user_id', user.id)
            .execute()
        )
        if not response.data:
            return None
        session = UserSession.model_validate(response.data[0])
        if not session.is_open:
            return session

        now = datetime.now(timezone.utc)
        started = session.check_in_time or session.created_at or now
        if started.tzinfo is None:
            started = started.replace(tzinfo=timezone.utc)
        duration_hours = round((now - started).total_seconds() / 3600, 2)

        updated = (
            self._client.table('user_sessions')
            .update({'check_out_time': now.isoformat(), 'duration_hours': duration_hours})
            .eq('id', session_id)
            .eq('user_id', user.id)
            .execute()
        )
        return UserSession.model_validate(updated.data[0]) if updated.data else None
