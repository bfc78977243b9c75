from functools import wraps
from flask import current_app, flash, redirect, render_template, session, url_for
from services.session import GateDecision, evaluate_gate
from utils.helpers import get_identity_session

# Session flag set once an administrator has passed the demo two-factor step.
TWO_FACTOR_SESSION_KEY = 'admin_two_factor_verified'

def identity_required(require_admin=False):
    """
    Decorator that puts a view behind the identity gate.

    Resolves the request's IdentitySession and renders exactly one branch:
    a loading placeholder, a redirect to the public page, an access-denied placeholder (403),
    a pending-approval placeholder, or the view itself. Admin-only views additionally
    require the two-factor step when ADMIN_TWO_FACTOR_REQUIRED is on.

    Args:
        require_admin (bool, optional): Whether only administrators may see the view.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity_session = get_identity_session()
            decision = evaluate_gate(identity_session, require_admin=require_admin)

            if decision is GateDecision.LOADING:
                return render_template('status/loading.html', title='Loading')
            if decision is GateDecision.REDIRECT:
                flash('Please sign in to continue.', 'info')
                return redirect(url_for('main.index'))
            if decision is GateDecision.ACCESS_DENIED:
                current_app.logger.warning(
                    f"Access denied: {identity_session.identity.email} requested an admin-only view.")
                return render_template('status/access_denied.html', title='Access Denied'), 403
            if decision is GateDecision.PENDING_APPROVAL:
                return render_template('status/pending_approval.html', title='Account Pending Approval',
                                       identity=identity_session.identity)
            if decision is GateDecision.ALLOW:
                if (require_admin and current_app.config.get('ADMIN_TWO_FACTOR_REQUIRED')
                        and not session.get(TWO_FACTOR_SESSION_KEY)):
                    return redirect(url_for('auth.admin_verify'))
                return f(*args, **kwargs)
            raise ValueError(f"Unhandled gate decision: {decision!r}")
        return decorated_function
    return decorator
