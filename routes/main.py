from flask import Blueprint, render_template, redirect, url_for, flash, current_app

from forms import JoinRequestForm, SignInForm
from services.demo_data import DEMO_PLANS, FACILITY_FEATURES, OPERATING_HOURS, CONTACT_INFO
from utils.helpers import get_api

# Blueprint for the public marketing page and the join-request form on it.
main_bp = Blueprint('main', __name__)

@main_bp.route('/')
def index():
    """
    Public landing page: facilities, plans, sign-in and registration entry points, and the
    'Join the Hive' request form.
    """
    try:
        plans = get_api().list_plans() or DEMO_PLANS
    except Exception as e:
        # The page stays usable with the built-in catalog when the store is unreachable.
        current_app.logger.warning(f"Plan catalog unavailable, showing demo plans: {e}")
        plans = DEMO_PLANS

    return render_template('index.html',
                           title='Nerdshive Coworking',
                           plans=plans,
                           features=FACILITY_FEATURES,
                           hours=OPERATING_HOURS,
                           contact=CONTACT_INFO,
                           sign_in_form=SignInForm(),
                           join_form=JoinRequestForm())

@main_bp.route('/join', methods=['POST'])
def join():
    """Stores a join request from a visitor; no account is needed."""
    form = JoinRequestForm()
    if not form.validate_on_submit():
        for messages in form.errors.values():
            for message in messages:
                flash(message, 'warning')
        return redirect(url_for('main.index', _anchor='join'))

    try:
        get_api().create_join_request(
            full_name=form.full_name.data.strip(),
            email=form.email.data.strip(),
            phone=form.phone.data.strip(),
            profession=form.profession.data.strip(),
            reason=form.reason.data.strip(),
        )
    except Exception as e:
        current_app.logger.error(f"Failed to store join request from {form.email.data}: {e}", exc_info=True)
        flash('Something went wrong. Please try again.', 'danger')
    else:
        current_app.logger.info(f"Join request received from {form.email.data}.")
        flash("Request Sent! We'll review your request and get back to you soon.", 'success')
    return redirect(url_for('main.index', _anchor='join'))
