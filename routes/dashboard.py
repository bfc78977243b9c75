from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app

from forms import CheckInForm, CheckOutForm, PaymentForm, QueryForm
from services.api import NotAuthenticatedError
from services.demo_data import (DEMO_PLANS, FAQ_DATA, UPI_PAYMENT_INSTRUCTIONS, merge_content,
                                sample_notifications)
from utils.decorators import identity_required
from utils.helpers import get_api, get_identity_session

# Blueprint for the member dashboard.
# Every tab is rendered by one view; actions are POSTs that redirect back to the tab they came from.
dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/dashboard')

TABS = ('plans', 'rules', 'guide', 'wifi', 'history', 'queries', 'faq', 'notifications')

GENERIC_ERROR = 'Something went wrong. Please try again.'
SESSION_EXPIRED = 'Your session has expired. Please sign in again.'


def _current_tab(default='plans'):
    tab = request.values.get('tab', default)
    return tab if tab in TABS else default


def _load(label, loader, default):
    """
    Reads one tab's data; a failed read is logged and flashed, and the tab renders `default`.

    Args:
        label (str): What is being loaded, for the log line.
        loader (callable): Façade call.
        default: Value to use when the call fails.
    """
    try:
        return loader()
    except Exception as e:
        current_app.logger.error(f"Failed to load {label} for the member dashboard: {e}", exc_info=True)
        flash(f'Could not load your {label}. Please refresh the page.', 'danger')
        return default


# Member dashboard.
@dashboard_bp.route('/')
@identity_required()
def index():
    """
    Renders the member dashboard.

    Query Parameters:
        tab (str, optional): Tab to open. Defaults to 'plans'.
        plan (str, optional): Plan selected on the plans tab; opens the payment form for it.
    """
    api = get_api()
    tab = _current_tab()

    catalog = _load('plans', api.list_plans, [])
    # Demo plans are shown for browsing only; payments and check-ins need a stored plan.
    plans = catalog or DEMO_PLANS
    selected_plan = next((plan for plan in catalog if plan.id == request.args.get('plan')), None)

    payment_form = PaymentForm(formdata=None, plan_id=selected_plan.id if selected_plan else None)

    return render_template('dashboard/user.html',
                           title='Dashboard',
                           tab=tab,
                           tabs=TABS,
                           identity=get_identity_session().identity,
                           plans=plans,
                           plans_selectable=bool(catalog),
                           selected_plan=selected_plan,
                           upi_id=current_app.config['UPI_ID'],
                           upi_instructions=UPI_PAYMENT_INSTRUCTIONS,
                           content=merge_content(_load('space information', api.list_content, [])),
                           payments=_load('payment history', api.list_user_payments, []),
                           usage_sessions=_load('check-ins', api.list_user_sessions, []),
                           queries=_load('questions', api.list_user_queries, []),
                           faq=FAQ_DATA,
                           notifications=sample_notifications(),
                           payment_form=payment_form,
                           query_form=QueryForm(formdata=None),
                           check_in_form=CheckInForm(formdata=None),
                           check_out_form=CheckOutForm(formdata=None))


# Payment submission: transaction id plus a screenshot of the UPI confirmation.
@dashboard_bp.route('/payments', methods=['POST'])
@identity_required()
def submit_payment():
    """Uploads the screenshot and records a pending payment for the selected plan."""
    form = PaymentForm()
    if not form.validate_on_submit():
        flash('Please select a plan, upload payment screenshot, and enter transaction ID.', 'warning')
        for messages in form.errors.values():
            for message in messages:
                flash(message, 'warning')
        return redirect(url_for('dashboard.index', tab='plans', plan=form.plan_id.data or None))

    api = get_api()
    try:
        plan = next((p for p in api.list_plans() if p.id == form.plan_id.data), None)
        if plan is None:
            flash('Please select a plan.', 'warning')
            return redirect(url_for('dashboard.index', tab='plans'))

        screenshot = form.screenshot.data
        screenshot_url = api.upload_file(screenshot.read(), screenshot.filename, screenshot.mimetype,
                                         bucket=current_app.config['UPLOAD_BUCKET'])
        payment = api.create_payment(plan.id, plan.price, form.transaction_id.data.strip(), screenshot_url)
    except NotAuthenticatedError:
        flash(SESSION_EXPIRED, 'warning')
        return redirect(url_for('main.index'))
    except Exception as e:
        current_app.logger.error(f"Payment submission failed: {e}", exc_info=True)
        flash(GENERIC_ERROR, 'danger')
        return redirect(url_for('dashboard.index', tab='plans', plan=form.plan_id.data))

    current_app.logger.info(f"Payment {payment.transaction_id} submitted for plan {plan.name}.")
    flash("Payment Submitted! We'll notify you once your payment is verified.", 'success')
    return redirect(url_for('dashboard.index', tab='history'))


@dashboard_bp.route('/queries', methods=['POST'])
@identity_required()
def submit_query():
    form = QueryForm()
    if form.validate_on_submit():
        try:
            get_api().create_query(form.question.data.strip())
        except NotAuthenticatedError:
            flash(SESSION_EXPIRED, 'warning')
            return redirect(url_for('main.index'))
        except Exception as e:
            current_app.logger.error(f"Failed to submit query: {e}", exc_info=True)
            flash(GENERIC_ERROR, 'danger')
        else:
            flash("Question Submitted! We'll get back to you soon with an answer.", 'success')
    else:
        for messages in form.errors.values():
            for message in messages:
                flash(message, 'warning')
    return redirect(url_for('dashboard.index', tab='queries'))


@dashboard_bp.route('/check-in', methods=['POST'])
@identity_required()
def check_in():
    """Opens a usage session under the posted plan."""
    form = CheckInForm()
    if not form.validate_on_submit():
        flash('Please select a plan.', 'warning')
        return redirect(url_for('dashboard.index', tab='history'))
    try:
        get_api().create_user_session(form.plan_id.data)
    except NotAuthenticatedError:
        flash(SESSION_EXPIRED, 'warning')
        return redirect(url_for('main.index'))
    except Exception as e:
        current_app.logger.error(f"Check-in failed: {e}", exc_info=True)
        flash(GENERIC_ERROR, 'danger')
    else:
        flash('Checked in. Have a productive day!', 'success')
    return redirect(url_for('dashboard.index', tab='history'))


@dashboard_bp.route('/check-out', methods=['POST'])
@identity_required()
def check_out():
    """Closes one of the member's open usage sessions."""
    form = CheckOutForm()
    if not form.validate_on_submit():
        return redirect(url_for('dashboard.index', tab='history'))
    try:
        usage = get_api().close_user_session(form.session_id.data)
    except NotAuthenticatedError:
        flash(SESSION_EXPIRED, 'warning')
        return redirect(url_for('main.index'))
    except Exception as e:
        current_app.logger.error(f"Check-out failed: {e}", exc_info=True)
        flash(GENERIC_ERROR, 'danger')
    else:
        if usage is None:
            flash('That check-in could not be found.', 'warning')
        else:
            flash(f'Checked out after {usage.duration_hours or 0:g} hours.', 'success')
    return redirect(url_for('dashboard.index', tab='history'))
