"""
Registration wizard.

A visitor registers in four steps (basic info, personal details, government ID, organizational
details). The in-progress answers are a `RegistrationDraft`; `RegistrationWizard` owns the draft,
the current step and the per-field error messages, and is the only thing that turns a finished
draft into an identity. Between requests the wizard lives Fernet-encrypted in the Flask session
(`WizardStore`); an accepted ID document waits in a local folder until submit uploads it.
"""

import enum
import logging
import os
import time
from dataclasses import asdict, dataclass, field, fields
from typing import Optional

from cryptography.fernet import InvalidToken
from werkzeug.utils import secure_filename

from forms import STEP_FORMS
from utils.helpers import make_storage_name
from utils.security import decrypt_payload, encrypt_payload

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_MIME_TYPES = ('image/jpeg', 'image/png', 'application/pdf')
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

SUBMIT_FAILED_MESSAGE = 'Something went wrong. Please try again.'


class RegistrationStep(enum.IntEnum):
    BASIC_INFO = 1
    PERSONAL_DETAILS = 2
    GOVERNMENT_ID = 3
    ORGANIZATIONAL_DETAILS = 4

    @property
    def title(self):
        return _STEP_TITLES[self]


_STEP_TITLES = {
    RegistrationStep.BASIC_INFO: 'Basic Information',
    RegistrationStep.PERSONAL_DETAILS: 'Personal Details',
    RegistrationStep.GOVERNMENT_ID: 'Government ID',
    RegistrationStep.ORGANIZATIONAL_DETAILS: 'Organizational Details',
}

FIRST_STEP = RegistrationStep.BASIC_INFO
LAST_STEP = RegistrationStep.ORGANIZATIONAL_DETAILS


class RegistrationSubmitError(Exception):
    """Creating the identity failed. The draft is kept so the visitor can retry."""

    def __init__(self, message=SUBMIT_FAILED_MESSAGE):
        super().__init__(message)
        self.message = message


@dataclass
class UploadedFileRef:
    """An accepted ID document waiting in the pending-upload folder."""
    path: str
    filename: str
    mimetype: str
    size: int


@dataclass
class RegistrationDraft:
    """Answers of the registration wizard. Never persisted as-is."""

    # Step 1
    full_name: str = ''
    email: str = ''
    password: str = ''
    confirm_password: str = ''
    # Step 2
    gender: str = ''
    mobile: str = ''
    city: str = ''
    location: str = ''
    occupation: str = ''
    # Step 3
    id_type: str = ''
    id_number: str = ''
    id_file: Optional[UploadedFileRef] = None
    # Step 4
    needs_reimbursement: bool = False
    organization_name: str = ''
    gst_number: str = ''
    organization_location: str = ''

    def form_data(self):
        """Values as the step forms expect them; the ID file is represented by its name."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != 'id_file'}
        data['id_file'] = self.id_file.filename if self.id_file else ''
        return data

    def profile(self):
        """
        Columns of the `users` row built from this draft.

        Email, password and the uploaded file URL are handled by the submit sequence.
        Organization columns are only kept when a GST invoice was requested.
        """
        reimbursing = self.needs_reimbursement
        return {
            'full_name': self.full_name.strip(),
            'phone': self.mobile,
            'gender': self.gender,
            'city': self.city.strip(),
            'location': self.location.strip(),
            'occupation': self.occupation.strip(),
            'id_type': self.id_type,
            'id_number': self.id_number,
            'needs_reimbursement': reimbursing,
            'organization_name': self.organization_name.strip() if reimbursing else None,
            'gst_number': self.gst_number if reimbursing else None,
            'organization_location': self.organization_location.strip() if reimbursing else None,
        }

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in (data or {}).items() if key in known}
        if values.get('id_file'):
            values['id_file'] = UploadedFileRef(**values['id_file'])
        return cls(**values)


# Fields a visitor types or picks. The ID document goes through attach_id_file instead.
EDITABLE_FIELDS = tuple(f.name for f in fields(RegistrationDraft) if f.name != 'id_file')
# Surrounding whitespace from autofill or paste is not part of the address.
TRIMMED_FIELDS = ('email',)


def _as_flag(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'y', 'yes', 'on')
    return bool(value)


class RegistrationWizard:
    """
    State of one visitor's registration.

    Attributes:
        draft (RegistrationDraft): Answers so far.
        step (RegistrationStep): Step currently shown.
        errors (dict): Field name -> message for the step last validated.
        submitted (bool): True once submit() succeeded; the wizard then shows its terminal screen.
    """

    def __init__(self, draft=None, step=FIRST_STEP, errors=None, submitted=False):
        self.draft = draft if draft is not None else RegistrationDraft()
        self.step = RegistrationStep(step)
        self.errors = dict(errors or {})
        self.submitted = submitted

    def update_field(self, name, value):
        """
        Sets one answer and clears that field's error.

        Raises:
            KeyError: If `name` is not an editable draft field.
        """
        if name not in EDITABLE_FIELDS:
            raise KeyError(name)
        if name == 'needs_reimbursement':
            value = _as_flag(value)
        else:
            value = '' if value is None else str(value)
            if name in TRIMMED_FIELDS:
                value = value.strip()
        setattr(self.draft, name, value)
        self.errors.pop(name, None)

    def attach_id_file(self, data, filename, mimetype, folder,
                       allowed_types=DEFAULT_ALLOWED_MIME_TYPES, max_bytes=DEFAULT_MAX_BYTES):
        """
        Accepts or rejects the government ID document.

        A rejected file only sets the `id_file` error; a previously accepted file stays attached.
        An accepted file is written to `folder` and replaces (and deletes) any earlier one.

        Args:
            data (bytes): File contents.
            filename (str): Name the browser sent.
            mimetype (str): Declared MIME type.
            folder (str): Pending-upload folder.
            allowed_types (tuple, optional): Accepted MIME types.
            max_bytes (int, optional): Largest accepted size.

        Returns:
            bool: True if the file was accepted.
        """
        if mimetype not in allowed_types:
            self.errors['id_file'] = "Please upload a JPG, PNG, or PDF file"
            logger.warning(f"Rejected ID document {filename!r}: type {mimetype!r} not allowed.")
            return False
        if len(data) > max_bytes:
            self.errors['id_file'] = f"File size must be less than {max_bytes // (1024 * 1024)}MB"
            logger.warning(f"Rejected ID document {filename!r}: {len(data)} bytes is over the limit.")
            return False

        os.makedirs(folder, exist_ok=True)
        path = os.path.join(folder, make_storage_name(filename))
        with open(path, 'wb') as handle:
            handle.write(data)

        self._remove_pending_file()
        self.draft.id_file = UploadedFileRef(
            path=path,
            filename=secure_filename(filename or '') or 'document',
            mimetype=mimetype,
            size=len(data),
        )
        self.errors.pop('id_file', None)
        return True

    def validate_step(self, step):
        """
        Runs every rule of `step` against the draft.

        Returns:
            dict: Field name -> first failing message; empty when the step is valid.
        """
        form = STEP_FORMS[int(step)](data=self.draft.form_data())
        form.validate()
        return {name: messages[0] for name, messages in form.errors.items() if name and messages}

    def go_next(self):
        """
        Validates the current step and advances when it passes.

        Returns:
            dict: The current step's errors; empty when the wizard moved on (or is on the last step).
        """
        self.errors = self.validate_step(self.step)
        if self.errors:
            return self.errors
        if self.step < LAST_STEP:
            self.step = RegistrationStep(self.step + 1)
        return {}

    def go_previous(self):
        """Steps back (not below the first step) and clears all errors without validating."""
        if self.step > FIRST_STEP:
            self.step = RegistrationStep(self.step - 1)
        self.errors = {}

    def submit(self, auth, bucket='uploads'):
        """
        Final guard on the last step, then uploads the ID document and creates the PENDING identity.

        Args:
            auth (services.auth.AuthService): Creates the auth user and its profile row.
            bucket (str, optional): Storage bucket for the ID document.

        Returns:
            dict: Errors of the last step; empty when the registration was submitted.

        Raises:
            RegistrationSubmitError: Upload or creation failed. Draft, step and file are unchanged.
        """
        self.errors = self.validate_step(LAST_STEP)
        if self.errors:
            return self.errors

        draft = self.draft
        try:
            id_file_url = None
            if draft.id_file is not None:
                with open(draft.id_file.path, 'rb') as handle:
                    data = handle.read()
                id_file_url = auth.api.upload_file(data, draft.id_file.filename, draft.id_file.mimetype, bucket=bucket)

            profile = draft.profile()
            profile['id_file_url'] = id_file_url
            identity = auth.sign_up(draft.email.strip(), draft.password, profile)
        except Exception as exc:
            logger.error(f"Registration submit failed for {draft.email}: {exc}", exc_info=True)
            message = getattr(exc, 'message', None) or SUBMIT_FAILED_MESSAGE
            raise RegistrationSubmitError(message) from exc

        logger.info(f"Registration submitted for {identity.email}; awaiting approval.")
        self._remove_pending_file()
        self.draft = RegistrationDraft()
        self.step = FIRST_STEP
        self.errors = {}
        self.submitted = True
        return {}

    def discard(self):
        """Throws the draft away (dialog closed), including any pending ID document."""
        self._remove_pending_file()
        self.draft = RegistrationDraft()
        self.step = FIRST_STEP
        self.errors = {}
        self.submitted = False

    def _remove_pending_file(self):
        ref = self.draft.id_file
        if ref is None:
            return
        try:
            os.remove(ref.path)
        except FileNotFoundError:
            pass
        self.draft.id_file = None

    def to_dict(self):
        return {
            'step': int(self.step),
            'errors': dict(self.errors),
            'submitted': self.submitted,
            'draft': self.draft.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            draft=RegistrationDraft.from_dict(data.get('draft')),
            step=data.get('step', FIRST_STEP),
            errors=data.get('errors'),
            submitted=data.get('submitted', False),
        )


class WizardStore:
    """
    Keeps a RegistrationWizard in a dict-like session, Fernet-encrypted (the draft holds a password).

    Args:
        storage (MutableMapping): Usually `flask.session`.
    """

    KEY = 'registration_wizard'

    def __init__(self, storage):
        self._storage = storage

    def load(self):
        """Returns the stored wizard, or a fresh one if none is stored or it cannot be read."""
        encrypted = self._storage.get(self.KEY)
        if not encrypted:
            return RegistrationWizard()
        try:
            return RegistrationWizard.from_dict(decrypt_payload(encrypted))
        except (InvalidToken, ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable registration draft from the session.")
            self.clear()
            return RegistrationWizard()

    def save(self, wizard):
        self._storage[self.KEY] = encrypt_payload(wizard.to_dict())

    def clear(self):
        self._storage.pop(self.KEY, None)


def expire_pending_uploads(folder, max_age, now=None):
    """
    Deletes ID documents left behind by registrations that were never submitted or cancelled.

    A draft cannot outlive the session cookie that carries it, so a pending file older than the
    session lifetime is no longer referenced by anyone.

    Args:
        folder (str): Pending-upload folder.
        max_age (float): Age in seconds after which a file is removed.
        now (float, optional): Current time as a Unix timestamp. Defaults to time.time().

    Returns:
        int: Number of files removed.
    """
    if not os.path.isdir(folder):
        return 0
    cutoff = (time.time() if now is None else now) - max_age
    removed = 0
    with os.scandir(folder) as entries:
        for entry in entries:
            if not entry.is_file() or entry.stat().st_mtime >= cutoff:
                continue
            try:
                os.remove(entry.path)
            except FileNotFoundError:
                continue # Swept by a concurrent request.
            removed += 1
    if removed:
        logger.info(f"Removed {removed} abandoned ID document(s) from {folder}.")
    return removed
