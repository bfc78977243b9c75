from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app

from forms import ContentForm, DecisionForm, QueryResponseForm
from models import IdentityStatusEnum, JoinRequestStatusEnum, PaymentStatusEnum
from services.api import InvalidStatusTransitionError, NotAuthenticatedError
from services.demo_data import merge_content
from utils.decorators import identity_required
from utils.helpers import get_api, get_identity_session

# Blueprint for the admin dashboard.
# All views are admin-only. Every action redirects back to its tab, which re-reads the lists
# from the store, so the page always shows the stored state, including decisions made
# meanwhile by another administrator.
admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

TABS = ('payments', 'join_requests', 'registrations', 'content', 'queries', 'members')

ALREADY_DECIDED = 'This item was already handled by another administrator. The list has been refreshed.'


def _load(label, loader, default):
    try:
        return loader()
    except Exception as e:
        current_app.logger.error(f"Failed to load {label} for the admin dashboard: {e}", exc_info=True)
        flash(f'Could not load {label}. Please refresh the page.', 'danger')
        return default


def _parse_decision(status_enum):
    """
    Reads the posted decision as a member of `status_enum`.

    Returns:
        The decided status, or None (flashed) when the form is invalid or names PENDING/an unknown value.
    """
    form = DecisionForm()
    if not form.validate_on_submit():
        flash('Invalid request. Please try again.', 'warning')
        return None
    try:
        decision = status_enum(form.decision.data)
    except ValueError:
        decision = None
    if decision is None or decision.is_pending:
        flash('Unknown decision.', 'warning')
        return None
    return decision


def _apply(tab, action, description):
    """
    Runs one admin mutation and turns its outcome into a flash message.

    Args:
        tab (str): Tab to return to.
        action (callable): The façade call.
        description (str): Success message.
    """
    try:
        action()
    except InvalidStatusTransitionError as e:
        current_app.logger.warning(f"Stale admin decision on tab {tab}: {e}")
        flash(ALREADY_DECIDED, 'warning')
    except NotAuthenticatedError:
        flash('Your session has expired. Please sign in again.', 'warning')
        return redirect(url_for('auth.admin_login'))
    except Exception as e:
        current_app.logger.error(f"Admin action on tab {tab} failed: {e}", exc_info=True)
        flash('Something went wrong. Please try again.', 'danger')
    else:
        admin = get_identity_session().identity
        current_app.logger.info(f"{admin.email if admin else 'unknown'}: {description}")
        flash(description, 'success')
    return redirect(url_for('admin.index', tab=tab))


# Admin dashboard.
@admin_bp.route('/')
@identity_required(require_admin=True)
def index():
    """
    Renders the admin dashboard.

    Query Parameters:
        tab (str, optional): One of TABS. Defaults to 'payments'.
    """
    api = get_api()
    tab = request.args.get('tab', 'payments')
    if tab not in TABS:
        tab = 'payments'

    return render_template('dashboard/admin.html',
                           title='Admin Dashboard',
                           tab=tab,
                           tabs=TABS,
                           identity=get_identity_session().identity,
                           payments=_load('pending payments', api.list_payments, []),
                           join_requests=_load('join requests', api.list_join_requests, []),
                           registrations=_load('registrations', api.list_pending_identities, []),
                           content=merge_content(_load('content', api.list_content, [])),
                           queries=_load('queries', api.list_queries, []),
                           members=_load('members', api.list_approved_members, []),
                           decision_form=DecisionForm(formdata=None),
                           content_form=ContentForm(formdata=None),
                           response_form=QueryResponseForm(formdata=None))


@admin_bp.route('/payments/<payment_id>', methods=['POST'])
@identity_required(require_admin=True)
def decide_payment(payment_id):
    status = _parse_decision(PaymentStatusEnum)
    if status is None:
        return redirect(url_for('admin.index', tab='payments'))
    verb = 'verified' if status is PaymentStatusEnum.VERIFIED else 'declined'
    return _apply('payments', lambda: get_api().update_payment_status(payment_id, status),
                  f'Payment {verb}.')


@admin_bp.route('/join-requests/<request_id>', methods=['POST'])
@identity_required(require_admin=True)
def decide_join_request(request_id):
    status = _parse_decision(JoinRequestStatusEnum)
    if status is None:
        return redirect(url_for('admin.index', tab='join_requests'))
    verb = 'approved' if status is JoinRequestStatusEnum.APPROVED else 'declined'
    return _apply('join_requests', lambda: get_api().update_join_request_status(request_id, status),
                  f'Join request {verb}.')


@admin_bp.route('/registrations/<identity_id>', methods=['POST'])
@identity_required(require_admin=True)
def decide_registration(identity_id):
    """Approves or rejects a pending registration; approval unlocks the member dashboard."""
    status = _parse_decision(IdentityStatusEnum)
    if status is None:
        return redirect(url_for('admin.index', tab='registrations'))
    verb = 'approved' if status is IdentityStatusEnum.APPROVED else 'rejected'
    return _apply('registrations', lambda: get_api().update_identity_status(identity_id, status),
                  f'Registration {verb}.')


@admin_bp.route('/queries/<query_id>/respond', methods=['POST'])
@identity_required(require_admin=True)
def respond_to_query(query_id):
    form = QueryResponseForm()
    if not form.validate_on_submit():
        flash('Please type a response.', 'warning')
        return redirect(url_for('admin.index', tab='queries'))
    return _apply('queries', lambda: get_api().respond_to_query(query_id, form.response.data.strip()),
                  'Response sent to the member.')


@admin_bp.route('/content/<content_id>', methods=['POST'])
@identity_required(require_admin=True)
def update_content(content_id):
    """Saves the edited body of one content document."""
    form = ContentForm()
    if not form.validate_on_submit():
        flash('Content cannot be empty.', 'warning')
        return redirect(url_for('admin.index', tab='content'))

    def save():
        if get_api().update_content(content_id, form.body.data) is None:
            raise LookupError(f"Content document {content_id!r} does not exist.")

    return _apply('content', save, 'Content updated.')
