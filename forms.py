import re

from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, FileRequired # File upload field and validators for multipart forms.
from wtforms import (BooleanField, Form, HiddenField, PasswordField, SelectField, StringField,
                     SubmitField, TextAreaField)
from wtforms.validators import (AnyOf, DataRequired, Email, EqualTo, Length, Regexp, StopValidation,
                                ValidationError) # Import standard validators.

# --- Registration wizard ---
# The four step forms are plain wtforms.Form classes: they validate the draft kept in the
# session (passed as `data=`), not the raw request body, so they carry no CSRF token.
# Every rule runs for every field; DataRequired stops a field's chain, so each failing field
# reports exactly one message.

GENDER_CHOICES = [
    ('male', 'Male'),
    ('female', 'Female'),
    ('other', 'Other'),
    ('prefer-not-to-say', 'Prefer not to say'),
]

ID_TYPE_CHOICES = [
    ('pan', 'PAN Card'),
    ('aadhaar', 'Aadhaar Card'),
    ('voter', 'Voter ID'),
    ('driving', 'Driving License'),
]

# Patterns are anchored at both ends; `\Z` keeps a trailing newline from sneaking through.
EMAIL_PATTERN = r'^\S+@\S+\.\S+\Z'
MOBILE_PATTERN = r'^[6-9]\d{9}\Z'
AADHAAR_PATTERN = r'^\d{12}\Z'
PAN_PATTERN = r'^[A-Z]{5}[0-9]{4}[A-Z]\Z'
GST_PATTERN = r'^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]\Z'


class RequiredIf:
    """
    Makes a field required only while a boolean field of the same form is set.

    When the flag is off the rest of the chain is skipped and no error is reported,
    the same way wtforms' Optional behaves.

    Args:
        flag_field (str): Name of the BooleanField that switches the requirement on.
        message (str): Error reported when the flag is on and the field is blank.
    """

    def __init__(self, flag_field, message):
        self.flag_field = flag_field
        self.message = message
        self.field_flags = {}

    def __call__(self, form, field):
        flag = form._fields.get(self.flag_field)
        if flag is None:
            raise ValidationError(f'Invalid field name "{self.flag_field}".')
        if not flag.data:
            field.errors[:] = []
            raise StopValidation()
        if not (field.data or '').strip():
            raise StopValidation(self.message)


class BasicInfoForm(Form):
    """Step 1: who is registering and the sign-in credentials."""
    full_name = StringField('Full Name', validators=[DataRequired(message="Full name is required")])
    email = StringField('Email Address', validators=[
        DataRequired(message="Email is required"),
        Regexp(EMAIL_PATTERN, message="Please enter a valid email"),
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message="Password is required"),
        Length(min=6, message="Password must be at least 6 characters"),
    ])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(message="Please confirm your password"),
        EqualTo('password', message="Passwords don't match"),
    ])


class PersonalDetailsForm(Form):
    """Step 2: profile attributes."""
    # validate_choice is off so a blank selection reports "Gender is required" only once.
    gender = SelectField('Gender', choices=GENDER_CHOICES, validate_choice=False, validators=[
        DataRequired(message="Gender is required"),
        AnyOf([value for value, _ in GENDER_CHOICES], message="Gender is required"),
    ])
    mobile = StringField('Mobile Number', validators=[
        DataRequired(message="Mobile number is required"),
        Regexp(MOBILE_PATTERN, message="Please enter a valid 10-digit Indian mobile number"),
    ])
    city = StringField('City', validators=[DataRequired(message="City is required")])
    location = StringField('Location/Area', validators=[DataRequired(message="Location is required")])
    occupation = StringField('Occupation', validators=[DataRequired(message="Occupation is required")])


class GovernmentIDForm(Form):
    """Step 3: government ID. `id_file` holds the name of the accepted upload, blank when none."""
    id_type = SelectField('ID Type', choices=ID_TYPE_CHOICES, validate_choice=False, validators=[
        DataRequired(message="ID type is required"),
        AnyOf([value for value, _ in ID_TYPE_CHOICES], message="ID type is required"),
    ])
    id_number = StringField('ID Number', validators=[DataRequired(message="ID number is required")])
    id_file = HiddenField('ID Document', validators=[DataRequired(message="Please upload your ID document")])

    def validate_id_number(self, field):
        """Shape checks that depend on the selected ID type (Aadhaar and PAN only)."""
        if self.id_type.data == 'aadhaar' and not re.match(AADHAAR_PATTERN, field.data):
            raise ValidationError("Aadhaar number must be 12 digits")
        if self.id_type.data == 'pan' and not re.match(PAN_PATTERN, field.data):
            raise ValidationError("Please enter a valid PAN number")


class OrganizationalDetailsForm(Form):
    """Step 4: billing organization, only checked when the member needs a GST invoice."""
    needs_reimbursement = BooleanField('I need reimbursement (GST invoice)')
    organization_name = StringField('Organization Name', validators=[
        RequiredIf('needs_reimbursement', message="Organization name is required"),
    ])
    gst_number = StringField('GST Number', validators=[
        RequiredIf('needs_reimbursement', message="GST number is required"),
        Regexp(GST_PATTERN, message="Please enter a valid 15-character GST number"),
    ])
    organization_location = StringField('Organization Location', validators=[
        RequiredIf('needs_reimbursement', message="Organization location is required"),
    ])


# Step number -> form validating that step.
STEP_FORMS = {
    1: BasicInfoForm,
    2: PersonalDetailsForm,
    3: GovernmentIDForm,
    4: OrganizationalDetailsForm,
}


# --- Sign-in ---

class SignInForm(FlaskForm):
    """Member and administrator sign-in."""
    email = StringField('Email', validators=[DataRequired(message="Email is required"), Email(message="Please enter a valid email")])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required")])
    submit = SubmitField('Sign In')


class TwoFactorForm(FlaskForm):
    """Demo two-factor step shown to administrators after sign-in."""
    code = StringField('Verification Code', validators=[
        DataRequired(message="Verification code is required"),
        Regexp(r'^\d{6}\Z', message="Enter the 6-digit code"),
    ])
    submit = SubmitField('Verify')


# --- Member dashboard ---

class PaymentForm(FlaskForm):
    """UPI payment details for the selected plan."""
    plan_id = HiddenField('Plan', validators=[DataRequired(message="Please select a plan")])
    transaction_id = StringField('Transaction ID', validators=[
        DataRequired(message="Transaction ID is required"),
        Length(max=64, message="Transaction ID is too long"),
    ])
    # Screenshot of the UPI confirmation screen.
    screenshot = FileField('Payment Screenshot', validators=[
        FileRequired(message="Please upload your payment screenshot"),
        FileAllowed(['jpg', 'jpeg', 'png', 'pdf'], message="Please upload a JPG, PNG, or PDF file"),
    ])
    submit = SubmitField('Submit Payment')


class QueryForm(FlaskForm):
    """A question for the space's staff."""
    question = TextAreaField('Your Question', validators=[
        DataRequired(message="Please type your question"),
        Length(max=2000, message="Please keep your question under 2000 characters"),
    ])
    submit = SubmitField('Submit Question')


class CheckInForm(FlaskForm):
    """Starts a usage session at the space under one of the member's plans."""
    plan_id = HiddenField('Plan', validators=[DataRequired(message="Please select a plan")])


class CheckOutForm(FlaskForm):
    session_id = HiddenField(validators=[DataRequired()])


# --- Admin dashboard ---

class QueryResponseForm(FlaskForm):
    response = TextAreaField('Response', validators=[DataRequired(message="Please type a response")])
    submit = SubmitField('Send Response')


class ContentForm(FlaskForm):
    """Edits the body of one content document (rules, guide, WiFi)."""
    body = TextAreaField('Content', validators=[DataRequired(message="Content cannot be empty")])
    submit = SubmitField('Save Changes')


class DecisionForm(FlaskForm):
    """
    Approve/decline buttons of the admin review lists.

    Each button posts `decision` with the target status value; the row id is part of the URL.
    """
    decision = StringField(validators=[DataRequired(message="Please choose a decision")])


# --- Public page ---

class JoinRequestForm(FlaskForm):
    """'Join the Hive' request from visitors without an account."""
    full_name = StringField('Full Name', validators=[DataRequired(message="Full name is required")])
    email = StringField('Email', validators=[DataRequired(message="Email is required"), Email(message="Please enter a valid email")])
    phone = StringField('Phone', validators=[
        DataRequired(message="Mobile number is required"),
        Regexp(MOBILE_PATTERN, message="Please enter a valid 10-digit Indian mobile number"),
    ])
    profession = StringField('Profession', validators=[DataRequired(message="Profession is required")])
    reason = TextAreaField('Why do you want to join?', validators=[DataRequired(message="Please tell us why you want to join")])
    submit = SubmitField('Send Request')
