import io
import os
import time

import pytest

from app import create_app
from conftest import TestConfig, sign_in, sign_in_admin
from services.registration import WizardStore
from services.session import GateDecision
from utils.decorators import TWO_FACTOR_SESSION_KEY


def member_id(supabase, email):
    return supabase.accounts[email]['id']


@pytest.fixture
def plans(supabase):
    supabase.insert_row('plans', {'id': 'daily', 'name': 'Daily Pass', 'price': 299, 'period': '+ GST'})
    supabase.insert_row('plans', {'id': 'weekly', 'name': 'Weekly Pass', 'price': 1400, 'period': '+ GST', 'is_popular': True})


# --- Application factory ---

def test_create_app_requires_supabase_config(supabase):
    missing = type('MissingSupabase', (TestConfig,), {'SUPABASE_ANON_KEY': ''})
    with pytest.raises(RuntimeError, match="Missing Supabase configuration"):
        create_app(config_class=missing)


# --- Public page ---

def test_index_shows_stored_plans(client, plans):
    response = client.get('/')
    assert response.status_code == 200
    text = response.get_data(as_text=True)
    assert 'Weekly Pass' in text
    assert '₹1,400' in text
    assert 'Most Popular' in text
    assert 'Join the Hive' in text

def test_index_falls_back_to_demo_plans(client, supabase):
    supabase.fail_table('plans')
    response = client.get('/')
    assert response.status_code == 200
    text = response.get_data(as_text=True)
    assert '₹299' in text
    assert '₹4,600' in text

def test_index_with_empty_catalog_shows_demo_plans(client):
    assert '₹1,400' in client.get('/').get_data(as_text=True)

def test_join_request(client, supabase):
    response = client.post('/join', data={'full_name': 'Meera Iyer', 'email': 'meera@nerdshive.in', 'phone': '9123456780',
                                          'profession': 'Developer', 'reason': 'Need a quiet desk'})
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/#join')
    [row] = supabase.tables['join_requests']
    assert row['full_name'] == 'Meera Iyer'
    assert row['status'] == 'pending'
    assert 'Request Sent!' in client.get('/').get_data(as_text=True)

def test_join_request_with_invalid_phone(client, supabase):
    response = client.post('/join', data={'full_name': 'Meera Iyer', 'email': 'meera@nerdshive.in', 'phone': '12345',
                                          'profession': 'Developer', 'reason': 'Need a quiet desk'},
                           follow_redirects=True)
    assert 'Please enter a valid 10-digit Indian mobile number' in response.get_data(as_text=True)
    assert supabase.tables['join_requests'] == []

def test_join_request_store_failure(client, supabase):
    supabase.fail_table('join_requests')
    response = client.post('/join', data={'full_name': 'Meera Iyer', 'email': 'meera@nerdshive.in', 'phone': '9123456780',
                                          'profession': 'Developer', 'reason': 'Need a quiet desk'},
                           follow_redirects=True)
    assert 'Something went wrong. Please try again.' in response.get_data(as_text=True)


# --- Identity gate ---

def test_anonymous_visitor_is_redirected(client):
    response = client.get('/dashboard/')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    assert 'Please sign in to continue.' in client.get('/').get_data(as_text=True)

def test_gate_shows_loading_placeholder(client, mocker):
    mocker.patch('utils.decorators.evaluate_gate', return_value=GateDecision.LOADING)
    response = client.get('/dashboard/')
    assert response.status_code == 200
    assert 'Please wait while we verify your access.' in response.get_data(as_text=True)

def test_pending_member_sees_placeholder(client, pending_member):
    sign_in(client, *pending_member)
    response = client.get('/dashboard/')
    assert response.status_code == 200
    assert "Your account is awaiting admin approval. You'll be notified once approved." in response.get_data(as_text=True)

def test_rejected_member_sees_placeholder(client, supabase):
    supabase.add_identity('rita@nerdshive.in', password='rejected1', status='rejected')
    sign_in(client, 'rita@nerdshive.in', 'rejected1')
    response = client.get('/dashboard/')
    assert 'Account Pending Approval' in response.get_data(as_text=True)
    assert 'Your registration was not approved.' in response.get_data(as_text=True)

def test_member_cannot_open_admin_dashboard(client, member):
    sign_in(client, *member)
    response = client.get('/admin/')
    assert response.status_code == 403
    assert 'Access Denied' in response.get_data(as_text=True)


# --- Member sign-in ---

def test_sign_in_success(client, member):
    response = sign_in(client, *member)
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/dashboard/')
    text = client.get('/dashboard/').get_data(as_text=True)
    assert 'Welcome back, Asha!' in text
    assert 'You have successfully signed in.' in text

def test_sign_in_wrong_password_shows_banner(client, member):
    response = sign_in(client, member[0], 'wrong')
    assert response.status_code == 200
    assert 'Invalid email or password. Please try again.' in response.get_data(as_text=True)

def test_sign_in_unconfirmed_email_shows_banner(client, supabase, member):
    supabase.accounts[member[0]]['confirmed'] = False
    response = sign_in(client, *member)
    assert 'Please confirm your email address before signing in.' in response.get_data(as_text=True)

def test_sign_in_invalid_email_is_a_field_error(client):
    response = sign_in(client, 'not-an-email', 'x')
    assert response.status_code == 200
    assert 'Please enter a valid email' in response.get_data(as_text=True)

def test_sign_in_honours_safe_next(client, member):
    response = client.post('/auth/login', query_string={'next': '/dashboard/?tab=faq'},
                           data={'email': member[0], 'password': member[1]})
    assert response.headers['Location'].endswith('/dashboard/?tab=faq')

def test_sign_in_ignores_foreign_next(client, member):
    response = client.post('/auth/login', query_string={'next': 'http://evil.example.com/'},
                           data={'email': member[0], 'password': member[1]})
    assert response.headers['Location'].endswith('/dashboard/')

def test_signed_in_member_skips_sign_in_form(client, member):
    sign_in(client, *member)
    response = client.get('/auth/login')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/dashboard/')

def test_logout(client, member):
    sign_in(client, *member)
    response = client.get('/auth/logout', follow_redirects=True)
    assert 'You have been logged out successfully.' in response.get_data(as_text=True)
    assert client.get('/dashboard/').status_code == 302


# --- Admin sign-in ---

def test_admin_sign_in_requires_two_factor(client, admin):
    response = client.post('/auth/admin/login', data={'email': admin[0], 'password': admin[1]})
    assert response.headers['Location'].endswith('/auth/admin/verify')

    # The dashboard stays closed until the code is entered.
    assert client.get('/admin/').headers['Location'].endswith('/auth/admin/verify')

    page = client.get('/auth/admin/verify').get_data(as_text=True)
    assert 'Demo code: 123456' in page

    response = client.post('/auth/admin/verify', data={'code': '654321'})
    assert 'Invalid 2FA code.' in response.get_data(as_text=True)

    response = client.post('/auth/admin/verify', data={'code': '123456'})
    assert response.headers['Location'].endswith('/admin/')
    with client.session_transaction() as sess:
        assert sess[TWO_FACTOR_SESSION_KEY] == True
    assert 'Admin Dashboard' in client.get('/admin/').get_data(as_text=True)

def test_admin_sign_in_without_two_factor(app, client, admin):
    app.config['ADMIN_TWO_FACTOR_REQUIRED'] = False
    response = client.post('/auth/admin/login', data={'email': admin[0], 'password': admin[1]})
    assert response.headers['Location'].endswith('/admin/')
    assert client.get('/admin/').status_code == 200

def test_admin_sign_in_rejects_members(client, member):
    response = client.post('/auth/admin/login', data={'email': member[0], 'password': member[1]})
    assert 'Invalid admin credentials. Please check your email and password.' in response.get_data(as_text=True)
    # The member was signed straight back out.
    assert client.get('/dashboard/').status_code == 302

def test_admin_sign_in_wrong_password(client, admin):
    response = client.post('/auth/admin/login', data={'email': admin[0], 'password': 'nope'})
    assert 'Invalid admin credentials.' in response.get_data(as_text=True)

def test_verify_without_admin_goes_to_admin_sign_in(client):
    response = client.get('/auth/admin/verify')
    assert response.headers['Location'].endswith('/auth/admin/login')

def test_logout_forgets_two_factor(client, admin):
    sign_in_admin(client, *admin)
    client.get('/auth/logout')
    with client.session_transaction() as sess:
        assert TWO_FACTOR_SESSION_KEY not in sess


# --- Registration wizard ---

STEP_ONE = {'full_name': 'Ravi Kumar', 'email': 'ravi@nerdshive.in', 'password': 'secret123', 'confirm_password': 'secret123'}
STEP_TWO = {'gender': 'male', 'mobile': '9123456780', 'city': 'Bangalore', 'location': 'HSR Layout', 'occupation': 'Founder'}


def post_step(client, values, action='next', **kwargs):
    return client.post('/auth/register', data=dict(values, action=action), **kwargs)

def id_upload(name='aadhaar.pdf', mimetype='application/pdf', data=b'%PDF-1.4 id'):
    return {'id_type': 'aadhaar', 'id_number': '123412341234', 'id_file': (io.BytesIO(data), name, mimetype)}

def test_register_shows_first_step(client):
    text = client.get('/auth/register').get_data(as_text=True)
    assert 'Step 1 of 4: Basic Information' in text

def test_register_invalid_step_shows_errors(client):
    text = post_step(client, {'full_name': '', 'email': 'bad', 'password': '123', 'confirm_password': '456'}).get_data(as_text=True)
    assert 'Step 1 of 4' in text
    assert 'Full name is required' in text
    assert 'Please enter a valid email' in text
    assert 'Password must be at least 6 characters' in text

def test_register_previous_skips_validation(client):
    post_step(client, STEP_ONE)
    text = post_step(client, {'mobile': '12'}, action='previous').get_data(as_text=True)
    assert 'Step 1 of 4' in text
    assert 'valid 10-digit' not in text

def test_register_full_wizard(client, supabase, app):
    assert 'Step 2 of 4' in post_step(client, STEP_ONE).get_data(as_text=True)
    assert 'Step 3 of 4' in post_step(client, STEP_TWO).get_data(as_text=True)

    text = post_step(client, id_upload()).get_data(as_text=True)
    assert 'Step 4 of 4: Organizational Details' in text

    response = post_step(client, {}, action='submit')
    text = response.get_data(as_text=True)
    assert 'Registration Submitted!' in text
    assert 'You will be notified after admin approval.' in text

    [row] = supabase.tables['users']
    assert row['email'] == 'ravi@nerdshive.in'
    assert row['status'] == 'pending'
    assert row['phone'] == '9123456780'
    assert row['needs_reimbursement'] == False
    assert row['id_file_url'].startswith('https://fake.supabase.co/storage/v1/object/public/uploads/')
    assert len(supabase.objects) == 1

    # The draft is gone and the pending document was cleaned up.
    with client.session_transaction() as sess:
        assert WizardStore.KEY not in sess
    assert 'Step 1 of 4' in client.get('/auth/register').get_data(as_text=True)

def test_register_rejects_wrong_file_type(client):
    post_step(client, STEP_ONE)
    post_step(client, STEP_TWO)
    text = post_step(client, id_upload('id.gif', 'image/gif', b'GIF89a')).get_data(as_text=True)
    assert 'Step 3 of 4' in text
    assert 'Please upload a JPG, PNG, or PDF file' in text

def test_register_requires_id_document(client):
    post_step(client, STEP_ONE)
    post_step(client, STEP_TWO)
    text = post_step(client, {'id_type': 'pan', 'id_number': 'abcde1234f'}).get_data(as_text=True)
    assert 'Step 3 of 4' in text
    assert 'Please upload your ID document' in text
    assert 'Please enter a valid PAN number' in text
    assert 'abcde1234f' in text # Kept as typed.

def test_register_reimbursement_needs_organization(client, supabase):
    post_step(client, STEP_ONE)
    post_step(client, STEP_TWO)
    post_step(client, id_upload())
    text = post_step(client, {'needs_reimbursement': 'y'}, action='submit').get_data(as_text=True)
    assert 'Organization name is required' in text
    assert 'GST number is required' in text
    assert supabase.tables['users'] == []

def test_register_duplicate_email_keeps_draft(client, supabase):
    supabase.add_identity('ravi@nerdshive.in')
    post_step(client, STEP_ONE)
    post_step(client, STEP_TWO)
    post_step(client, id_upload())
    text = post_step(client, {}, action='submit').get_data(as_text=True)
    assert 'Something went wrong. Please try again.' in text
    assert 'Step 4 of 4' in text
    assert len(supabase.tables['users']) == 1

def test_register_cancel_discards_draft(client, app):
    post_step(client, STEP_ONE)
    post_step(client, STEP_TWO)
    post_step(client, id_upload())
    response = client.post('/auth/register/cancel')
    assert response.headers['Location'].endswith('/')
    assert 'Step 1 of 4' in client.get('/auth/register').get_data(as_text=True)
    assert os.listdir(app.config['PENDING_UPLOAD_FOLDER']) == []

def plant_abandoned_document(folder, name='abandoned.pdf', age_days=40):
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, name)
    with open(path, 'wb') as handle:
        handle.write(b'%PDF-1.4 left behind')
    stamp = time.time() - age_days * 24 * 3600
    os.utime(path, (stamp, stamp))
    return path

def test_id_upload_sweeps_abandoned_documents(client, app):
    abandoned = plant_abandoned_document(app.config['PENDING_UPLOAD_FOLDER'])
    post_step(client, STEP_ONE)
    post_step(client, STEP_TWO)
    assert 'Step 4 of 4' in post_step(client, id_upload()).get_data(as_text=True)
    assert not os.path.exists(abandoned)
    assert len(os.listdir(app.config['PENDING_UPLOAD_FOLDER'])) == 1

def test_app_start_sweeps_abandoned_documents(supabase, tmp_path):
    folder = str(tmp_path / 'pending')
    abandoned = plant_abandoned_document(folder)
    recent = plant_abandoned_document(folder, name='recent.pdf', age_days=0)
    create_app(config_class=type('SweepConfig', (TestConfig,), {'PENDING_UPLOAD_FOLDER': folder}))
    assert not os.path.exists(abandoned)
    assert os.path.exists(recent)


# --- Member dashboard ---

@pytest.mark.parametrize('tab, expected', [
    ('plans', 'Weekly Pass'),
    ('rules', 'Maintain silence in designated quiet zones'),
    ('guide', 'Getting Started'),
    ('wifi', 'NERDSHIVE_MEMBERS'),
    ('history', 'No payments yet.'),
    ('queries', 'Your Question'),
    ('faq', 'Is parking available?'),
    ('notifications', 'Networking Event Tomorrow'),
    ('unknown', 'Weekly Pass'),
])
def test_member_dashboard_tabs(client, member, plans, tab, expected):
    sign_in(client, *member)
    response = client.get('/dashboard/', query_string={'tab': tab})
    assert response.status_code == 200
    assert expected in response.get_data(as_text=True)

def test_selecting_a_plan_opens_payment_form(client, member, plans):
    sign_in(client, *member)
    text = client.get('/dashboard/', query_string={'plan': 'weekly'}).get_data(as_text=True)
    assert 'Pay for the Weekly Pass plan (₹1,400)' in text
    assert 'nerdshive@paytm' in text

def test_demo_plans_are_shown_but_not_selectable(client, member):
    sign_in(client, *member)
    text = client.get('/dashboard/', query_string={'plan': 'weekly'}).get_data(as_text=True)
    assert '₹4,600' in text
    assert 'Select Monthly' not in text
    assert 'Pay for the' not in text
    assert 'Plans are not available for purchase right now.' in text
    assert 'Check In</button>' not in client.get('/dashboard/?tab=history').get_data(as_text=True)

def test_submit_payment(client, supabase, member, plans):
    sign_in(client, *member)
    response = client.post('/dashboard/payments', data={
        'plan_id': 'weekly',
        'transaction_id': ' UPI123456 ',
        'screenshot': (io.BytesIO(b'png-bytes'), 'upi.png', 'image/png'),
    })
    assert response.headers['Location'].endswith('/dashboard/?tab=history')

    [payment] = supabase.tables['payments']
    assert payment['user_id'] == member_id(supabase, member[0])
    assert payment['amount'] == 1400
    assert payment['transaction_id'] == 'UPI123456'
    assert payment['status'] == 'pending'
    [(bucket, object_name)] = list(supabase.objects)
    assert payment['payment_screenshot_url'].endswith(f'/{bucket}/{object_name}')

    text = client.get('/dashboard/?tab=history').get_data(as_text=True)
    assert 'Payment Submitted!' in text
    assert 'UPI123456' in text

def test_submit_payment_without_screenshot(client, supabase, member, plans):
    sign_in(client, *member)
    response = client.post('/dashboard/payments', data={'plan_id': 'weekly', 'transaction_id': 'UPI1'},
                           follow_redirects=True)
    assert 'Please select a plan, upload payment screenshot, and enter transaction ID.' in response.get_data(as_text=True)
    assert supabase.tables['payments'] == []

def test_submit_payment_storage_failure(client, supabase, member, plans):
    supabase.fail_storage()
    sign_in(client, *member)
    response = client.post('/dashboard/payments', data={
        'plan_id': 'weekly', 'transaction_id': 'UPI1',
        'screenshot': (io.BytesIO(b'png-bytes'), 'upi.png', 'image/png'),
    }, follow_redirects=True)
    assert 'Something went wrong. Please try again.' in response.get_data(as_text=True)
    assert supabase.tables['payments'] == []

def test_submit_query(client, supabase, member):
    sign_in(client, *member)
    response = client.post('/dashboard/queries', data={'question': 'Is parking free?'}, follow_redirects=True)
    assert 'Question Submitted!' in response.get_data(as_text=True)
    [query] = supabase.tables['queries']
    assert query['user_name'] == 'Asha Rao'
    assert query['status'] == 'pending'

def test_check_in_and_out(client, supabase, member, plans):
    sign_in(client, *member)
    response = client.post('/dashboard/check-in', data={'plan_id': 'weekly'}, follow_redirects=True)
    assert 'Checked in.' in response.get_data(as_text=True)
    [usage] = supabase.tables['user_sessions']

    response = client.post('/dashboard/check-out', data={'session_id': usage['id']}, follow_redirects=True)
    assert 'Checked out after' in response.get_data(as_text=True)
    assert supabase.tables['user_sessions'][0]['check_out_time'] is not None


# --- Admin dashboard ---

@pytest.mark.parametrize('tab', ['payments', 'join_requests', 'registrations', 'content', 'queries', 'members'])
def test_admin_tabs_render(client, admin, tab):
    sign_in_admin(client, *admin)
    response = client.get('/admin/', query_string={'tab': tab})
    assert response.status_code == 200

def test_admin_lists_pending_payment(client, supabase, admin, member, plans):
    supabase.insert_row('payments', {'user_id': member_id(supabase, member[0]), 'plan_id': 'weekly',
                                     'amount': 1400, 'transaction_id': 'UPI777'})
    sign_in_admin(client, *admin)
    text = client.get('/admin/?tab=payments').get_data(as_text=True)
    assert 'Pending Payments (1)' in text
    assert 'Asha Rao' in text
    assert 'UPI777' in text

def test_admin_verifies_payment(client, supabase, admin, member, plans):
    payment = supabase.insert_row('payments', {'user_id': member_id(supabase, member[0]), 'plan_id': 'weekly',
                                               'amount': 1400, 'transaction_id': 'UPI777'})
    sign_in_admin(client, *admin)
    response = client.post(f"/admin/payments/{payment['id']}", data={'decision': 'verified'}, follow_redirects=True)
    text = response.get_data(as_text=True)
    assert 'Payment verified.' in text
    assert 'Pending Payments (0)' in text
    assert supabase.tables['payments'][0]['status'] == 'verified'
    assert supabase.tables['payments'][0]['verified_by'] == member_id(supabase, admin[0])

def test_second_administrator_is_told_payment_was_handled(app, supabase, admin, member, plans):
    payment = supabase.insert_row('payments', {'user_id': member_id(supabase, member[0]), 'plan_id': 'weekly',
                                               'amount': 1400, 'transaction_id': 'UPI777'})
    first, second = app.test_client(), app.test_client()
    sign_in_admin(first, *admin)
    sign_in_admin(second, *admin)

    first.post(f"/admin/payments/{payment['id']}", data={'decision': 'rejected'})
    response = second.post(f"/admin/payments/{payment['id']}", data={'decision': 'verified'}, follow_redirects=True)

    assert 'already handled by another administrator' in response.get_data(as_text=True)
    assert supabase.tables['payments'][0]['status'] == 'rejected'

def test_admin_decision_must_be_a_known_status(client, supabase, admin, member, plans):
    payment = supabase.insert_row('payments', {'user_id': member_id(supabase, member[0]), 'plan_id': 'weekly',
                                               'amount': 1400, 'transaction_id': 'UPI777'})
    sign_in_admin(client, *admin)
    for decision in ('pending', 'refunded'):
        response = client.post(f"/admin/payments/{payment['id']}", data={'decision': decision}, follow_redirects=True)
        assert 'Unknown decision.' in response.get_data(as_text=True)
    assert supabase.tables['payments'][0]['status'] == 'pending'

def test_admin_approves_join_request(client, supabase, admin):
    join_request = supabase.insert_row('join_requests', {'full_name': 'Meera Iyer', 'email': 'meera@nerdshive.in',
                                                         'phone': '9123456780', 'profession': 'Developer', 'reason': 'Desk'})
    sign_in_admin(client, *admin)
    response = client.post(f"/admin/join-requests/{join_request['id']}", data={'decision': 'approved'}, follow_redirects=True)
    assert 'Join request approved.' in response.get_data(as_text=True)
    assert supabase.tables['join_requests'][0]['status'] == 'approved'

def test_approved_registration_unlocks_dashboard(app, supabase, admin, pending_member):
    pending_id = member_id(supabase, pending_member[0])
    admin_client, member_client = app.test_client(), app.test_client()
    sign_in(member_client, *pending_member)
    assert 'Account Pending Approval' in member_client.get('/dashboard/').get_data(as_text=True)

    sign_in_admin(admin_client, *admin)
    response = admin_client.post(f'/admin/registrations/{pending_id}', data={'decision': 'approved'}, follow_redirects=True)
    assert 'Registration approved.' in response.get_data(as_text=True)

    assert 'Welcome back, Ravi!' in member_client.get('/dashboard/').get_data(as_text=True)

def test_admin_answers_query(client, supabase, admin, member):
    query = supabase.insert_row('queries', {'user_id': member_id(supabase, member[0]), 'user_name': 'Asha Rao',
                                            'question': 'Is parking free?'})
    sign_in_admin(client, *admin)
    response = client.post(f"/admin/queries/{query['id']}/respond", data={'response': ' Yes, it is. '}, follow_redirects=True)
    assert 'Response sent to the member.' in response.get_data(as_text=True)
    assert supabase.tables['queries'][0]['status'] == 'answered'
    assert supabase.tables['queries'][0]['response'] == 'Yes, it is.'

def test_admin_updates_content(app, supabase, admin, member):
    supabase.insert_row('content', {'id': 'rules', 'title': 'Rules & Regulations', 'content': 'Old rules'})
    admin_client, member_client = app.test_client(), app.test_client()
    sign_in_admin(admin_client, *admin)
    response = admin_client.post('/admin/content/rules', data={'body': 'Silence after 8 PM'}, follow_redirects=True)
    assert 'Content updated.' in response.get_data(as_text=True)

    sign_in(member_client, *member)
    assert 'Silence after 8 PM' in member_client.get('/dashboard/?tab=rules').get_data(as_text=True)

def test_admin_updates_missing_content(client, admin):
    sign_in_admin(client, *admin)
    response = client.post('/admin/content/parking', data={'body': 'Anything'}, follow_redirects=True)
    assert 'Something went wrong. Please try again.' in response.get_data(as_text=True)

def test_admin_store_failure_on_decision(client, supabase, admin):
    sign_in_admin(client, *admin)
    supabase.fail_table('join_requests')
    response = client.post('/admin/join-requests/j1', data={'decision': 'approved'}, follow_redirects=True)
    assert response.status_code == 200
    assert 'Something went wrong. Please try again.' in response.get_data(as_text=True)
