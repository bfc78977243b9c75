import hmac # Constant-time comparison of the admin verification code.

from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app, session
from flask_login import login_user, logout_user

from forms import STEP_FORMS, SignInForm, TwoFactorForm
from services.auth import AuthenticationError
from services.registration import (LAST_STEP, RegistrationStep, RegistrationSubmitError, WizardStore,
                                   expire_pending_uploads)
from utils.decorators import TWO_FACTOR_SESSION_KEY
from utils.helpers import get_identity_session, is_safe_url

# Blueprint for authentication-related routes.
# Groups the registration wizard, member sign-in, the admin sign-in with its demo two-factor
# step, and sign-out under the '/auth' URL prefix.
auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

ADMIN_LOGIN_ERROR = "Invalid admin credentials. Please check your email and password."
TWO_FACTOR_ERROR = "Invalid 2FA code."


def _home_for(identity):
    """Where a freshly signed-in identity lands: admins on /admin, members on /dashboard."""
    return url_for('admin.index') if identity.is_admin else url_for('dashboard.index')


def _apply_step_input(wizard):
    """
    Copies the posted values of the current step into the draft and handles the ID upload.

    Returns:
        bool: False if an uploaded ID document was rejected; the step must not move then.
    """
    step_fields = STEP_FORMS[wizard.step]()._fields
    for name in step_fields:
        if name == 'id_file':
            continue
        if name == 'needs_reimbursement':
            # Unchecked checkboxes are simply absent from the form body.
            wizard.update_field(name, request.form.get(name))
        elif name in request.form:
            wizard.update_field(name, request.form.get(name))

    upload = request.files.get('id_file')
    if wizard.step == RegistrationStep.GOVERNMENT_ID and upload is not None and upload.filename:
        folder = current_app.config['PENDING_UPLOAD_FOLDER']
        expire_pending_uploads(folder, current_app.permanent_session_lifetime.total_seconds())
        return wizard.attach_id_file(
            upload.read(),
            upload.filename,
            upload.mimetype,
            folder,
            allowed_types=current_app.config['ALLOWED_UPLOAD_MIME_TYPES'],
            max_bytes=current_app.config['MAX_UPLOAD_BYTES'],
        )
    return True


def _render_step(wizard):
    form = STEP_FORMS[wizard.step](data=wizard.draft.form_data())
    return render_template('auth/register.html', title='Join Nerdshive', wizard=wizard, form=form,
                           errors=wizard.errors, steps=list(RegistrationStep), last_step=LAST_STEP)


# Route for the registration wizard.
# GET shows the current step; POST carries `action` = next | previous | submit.
@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    """
    Handles the four-step registration.

    The wizard (draft, step, errors) is kept encrypted in the session between requests.
    A successful submit creates a PENDING identity and shows the terminal confirmation screen.
    """
    store = WizardStore(session)
    wizard = store.load()

    if request.method == 'POST':
        action = request.form.get('action', 'next')
        accepted = _apply_step_input(wizard)

        if action == 'previous':
            wizard.go_previous()
        elif not accepted:
            pass # The rejected upload's message is already on the step; stay put.
        elif action == 'submit' and wizard.step == LAST_STEP:
            try:
                wizard.submit(get_identity_session().auth, bucket=current_app.config['UPLOAD_BUCKET'])
            except RegistrationSubmitError as e:
                flash(e.message, 'danger')
            if wizard.submitted:
                store.clear()
                current_app.logger.info("Registration wizard completed.")
                flash('Registration Submitted! You will be notified after admin approval.', 'success')
                return render_template('auth/register_submitted.html', title='Registration Submitted')
        else:
            wizard.go_next()

        store.save(wizard)

    return _render_step(wizard)


@auth_bp.route('/register/cancel', methods=['POST'])
def register_cancel():
    """Closes the wizard: the draft and any pending ID document are discarded."""
    store = WizardStore(session)
    wizard = store.load()
    wizard.discard()
    store.clear()
    return redirect(url_for('main.index'))


# Route for member sign-in.
@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """
    GET: Displays the sign-in form.
    POST: Signs in through Supabase; failures are shown in a banner above the form.
    """
    identity_session = get_identity_session()
    if identity_session.identity is not None:
        return redirect(_home_for(identity_session.identity))

    form = SignInForm()
    error = None
    if form.validate_on_submit():
        try:
            identity = identity_session.sign_in(form.email.data.strip(), form.password.data)
        except AuthenticationError as e:
            current_app.logger.warning(f"Failed sign-in for {form.email.data}: {e.kind.value}")
            error = e.message
        else:
            login_user(identity)
            current_app.logger.info(f"Identity {identity.email} signed in.")
            flash('Welcome back! You have successfully signed in.', 'success')

            # Honour 'next' only when it stays on this host.
            next_page = request.args.get('next')
            if next_page and is_safe_url(next_page):
                return redirect(next_page)
            return redirect(_home_for(identity))

    return render_template('auth/login.html', title='Sign In', form=form, error=error)


# Route for administrator sign-in (first factor).
@auth_bp.route('/admin/login', methods=['GET', 'POST'])
def admin_login():
    """Signs an administrator in; non-admin identities are signed straight back out."""
    identity_session = get_identity_session()
    form = SignInForm()
    error = None
    if form.validate_on_submit():
        try:
            identity = identity_session.sign_in(form.email.data.strip(), form.password.data)
        except AuthenticationError as e:
            current_app.logger.warning(f"Failed admin sign-in for {form.email.data}: {e.kind.value}")
            error = ADMIN_LOGIN_ERROR
        else:
            if not identity.is_admin:
                current_app.logger.warning(f"Non-admin {identity.email} tried the admin sign-in.")
                identity_session.sign_out()
                error = ADMIN_LOGIN_ERROR
            else:
                login_user(identity)
                session[TWO_FACTOR_SESSION_KEY] = False
                current_app.logger.info(f"Administrator {identity.email} passed the first sign-in factor.")
                if current_app.config.get('ADMIN_TWO_FACTOR_REQUIRED'):
                    return redirect(url_for('auth.admin_verify'))
                flash('Welcome Admin! You have successfully signed in as admin.', 'success')
                return redirect(url_for('admin.index'))

    return render_template('auth/admin_login.html', title='Admin Sign In', form=form, error=error)


# Route for the demo two-factor step of administrators.
@auth_bp.route('/admin/verify', methods=['GET', 'POST'])
def admin_verify():
    """
    Checks the verification code of a signed-in administrator.

    The code comes from ADMIN_TWO_FACTOR_CODE; it is a demo fixture, not a delivered one-time code.
    """
    identity_session = get_identity_session()
    if not identity_session.is_admin:
        return redirect(url_for('auth.admin_login'))

    form = TwoFactorForm()
    error = None
    if form.validate_on_submit():
        expected = str(current_app.config.get('ADMIN_TWO_FACTOR_CODE', ''))
        if expected and hmac.compare_digest(form.code.data.strip().encode('utf-8'), expected.encode('utf-8')):
            session[TWO_FACTOR_SESSION_KEY] = True
            current_app.logger.info(f"Administrator {identity_session.identity.email} passed two-factor verification.")
            flash('Welcome Admin! You have successfully signed in as admin.', 'success')
            return redirect(url_for('admin.index'))
        current_app.logger.warning(f"Wrong two-factor code for {identity_session.identity.email}.")
        error = TWO_FACTOR_ERROR

    return render_template('auth/admin_verify.html', title='Two-Factor Verification', form=form, error=error,
                           demo_code=current_app.config.get('ADMIN_TWO_FACTOR_CODE'))


# Route for sign-out.
@auth_bp.route('/logout')
def logout():
    """Signs out at Supabase, clears the local session and returns to the public page."""
    identity_session = get_identity_session()
    email = identity_session.identity.email if identity_session.identity else None
    try:
        identity_session.sign_out()
    except Exception as e:
        # The local session is cleared regardless; the remote token simply expires.
        current_app.logger.error(f"Supabase sign-out failed for {email}: {e}", exc_info=True)
    logout_user()
    session.pop(TWO_FACTOR_SESSION_KEY, None)
    if email:
        current_app.logger.info(f"Identity {email} signed out.")
    flash('You have been logged out successfully.', 'info')
    return redirect(url_for('main.index'))
