"""
Static content of the space: payment instructions, contact details, hours, WiFi, FAQ, and the
text shown on the rules/guide/WiFi tabs until an administrator saves a version of their own.
"""

from datetime import datetime, timedelta, timezone

from models import Content, Plan

UPI_PAYMENT_INSTRUCTIONS = [
    'Open your UPI app (PhonePe, Google Pay, Paytm, etc.)',
    'Scan the QR code or enter the UPI ID manually',
    'Enter the amount as per your selected plan',
    'Complete the payment',
    'Take a screenshot of the payment confirmation',
    'Upload the screenshot along with transaction ID',
]

CONTACT_INFO = {
    'phone': '+91 98765 43210',
    'email': 'support@nerdshive.com',
    'address': 'Nerdshive Coworking Space, Bangalore, Karnataka',
    'emergency_contact': '+91 98765 43211',
    'tech_support': 'tech@nerdshive.com',
}

OPERATING_HOURS = {
    'weekdays': '9:00 AM - 10:00 PM',
    'saturday': '9:00 AM - 10:00 PM',
    'sunday': '10:00 AM - 8:00 PM',
    'monthly_members': '24/7 Access Available',
}

WIFI_NETWORKS = {
    'guest': {
        'ssid': 'NERDSHIVE_GUEST',
        'password': 'Welcome2024!',
        'speed': '100 Mbps',
        'usage': 'General browsing, emails',
    },
    'members': {
        'ssid': 'NERDSHIVE_MEMBERS',
        'password': 'Member@2024',
        'speed': '500 Mbps',
        'usage': 'Video calls, large downloads',
        'access': 'Monthly members only',
    },
}

FACILITY_FEATURES = [
    {'icon': '🌐', 'title': 'High-Speed Internet', 'description': 'Fiber optic connection up to 500 Mbps'},
    {'icon': '🏢', 'title': 'Meeting Rooms', 'description': 'Bookable private spaces for meetings'},
    {'icon': '☕', 'title': 'Complimentary Beverages', 'description': 'Free coffee, tea, and refreshments'},
    {'icon': '🖨️', 'title': 'Printing Services', 'description': 'High-quality printing and scanning'},
    {'icon': '🔒', 'title': 'Secure Lockers', 'description': 'Personal storage for your belongings'},
    {'icon': '📞', 'title': 'Phone Booths', 'description': 'Private spaces for important calls'},
    {'icon': '🅿️', 'title': 'Parking Available', 'description': 'Secure parking for cars and bikes'},
    {'icon': '🛡️', 'title': '24/7 Security', 'description': 'CCTV monitoring and access control'},
]

FAQ_DATA = [
    {
        'question': 'What are the operating hours?',
        'answer': 'Monday-Saturday: 9 AM - 10 PM, Sunday: 10 AM - 8 PM. Monthly members get 24/7 access.',
    },
    {
        'question': 'Is parking available?',
        'answer': 'Yes, we provide secure parking for both cars and motorcycles at no additional cost.',
    },
    {
        'question': 'Can I bring guests?',
        'answer': 'Yes, members can bring guests. Please register them at the front desk upon arrival.',
    },
    {
        'question': 'Are meeting rooms included?',
        'answer': 'Meeting rooms can be booked by weekly and monthly members. Daily members can book at additional cost.',
    },
    {
        'question': 'What about food and beverages?',
        'answer': 'We provide complimentary coffee, tea, and light snacks. Outside food is allowed in designated areas.',
    },
    {
        'question': 'Is there a dress code?',
        'answer': 'We maintain a business casual environment. Please dress appropriately for a professional workspace.',
    },
]

COMMUNITY_RULES = [
    'Maintain silence in designated quiet zones',
    'Clean up after yourself in common areas',
    'No outside food in meeting rooms',
    'Register guests at the front desk',
    "Respect others' workspace and belongings",
    'Keep phone conversations brief in common areas',
]

GUIDE_TEXT = """Your Nerdshive Guide

Getting Started:
- Check in at the front desk with your membership
- Collect your access card and locker key
- Download our mobile app for bookings

Facilities:
- Meeting rooms (bookable via app)
- Phone booths for private calls
- Printing station (₹2 per page)
- Coffee & snacks available 24/7

Operating Hours:
Monday - Saturday: 9 AM - 10 PM
Sunday: 10 AM - 8 PM

Need Help?
Contact our friendly staff at the front desk or use the Query Panel!"""

WIFI_TEXT = """WiFi Information

Network: NERDSHIVE_GUEST
Password: Welcome2024!

Secure Network: NERDSHIVE_MEMBERS
Password: Member@2024 (For monthly members only)

Speeds:
- Guest Network: Up to 100 Mbps
- Members Network: Up to 500 Mbps

Pro Tips:
- Use the Members network for video calls
- Guest network is perfect for browsing
- Contact IT support for any connectivity issues"""

# Documents shown on the member tabs, keyed like the rows of the `content` table.
DEFAULT_CONTENT = {
    'rules': Content(id='rules', title='Rules & Regulations', content='\n'.join(COMMUNITY_RULES)),
    'guide': Content(id='guide', title='User Guide', content=GUIDE_TEXT),
    'wifi': Content(id='wifi', title='WiFi Information', content=WIFI_TEXT),
}

# Shown on the public page when the plan catalog cannot be read.
DEMO_PLANS = [
    Plan(id='daily', name='Daily', price=299, period='+ GST',
         features=['8 hours access', 'High-speed Wi-Fi', 'Basic amenities', 'Common area access']),
    Plan(id='weekly', name='Weekly', price=1400, period='+ GST', is_popular=True,
         features=['Unlimited access', 'High-speed Wi-Fi', 'All amenities', 'Priority booking', 'Meeting room access']),
    Plan(id='monthly', name='Monthly', price=4600, period='+ GST',
         features=['24/7 access', 'Dedicated desk option', 'All premium amenities', 'Private cabin booking', 'Business address']),
]


def merge_content(rows):
    """
    Combines stored content rows with the defaults.

    Args:
        rows (list[Content]): Rows read from the `content` table.

    Returns:
        dict: content id -> Content; stored rows win over the defaults.
    """
    merged = dict(DEFAULT_CONTENT)
    merged.update({row.id: row for row in rows})
    return merged


def sample_notifications(now=None):
    """Notification panel entries, timestamped relative to `now`."""
    now = now or datetime.now(timezone.utc)
    return [
        {'id': 1, 'title': 'Welcome to Nerdshive!', 'type': 'success',
         'message': 'Your account has been approved. Start exploring our facilities!',
         'timestamp': now - timedelta(hours=2)},
        {'id': 2, 'title': 'Networking Event Tomorrow', 'type': 'event',
         'message': 'Join us for our weekly networking session at 6 PM.',
         'timestamp': now - timedelta(hours=3)},
        {'id': 3, 'title': 'Payment Verified', 'type': 'info',
         'message': 'Your monthly plan payment has been verified successfully.',
         'timestamp': now - timedelta(days=1)},
    ]
