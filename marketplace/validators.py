"""
Validators for marketplace user data.
"""

import re

from django.core.exceptions import ValidationError

# Separators people type between digit groups
_SEPARATORS = re.compile(r'[\s\-()]')

# Optional +91 / 91 / 0 prefix, then a 10-digit mobile number starting 6-9
_INDIAN_MOBILE = re.compile(r'^(?:\+91|91|0)?([6-9]\d{9})$')


def normalize_phone_number(value):
    """Return the bare 10-digit mobile number, or None if ``value`` is not one."""
    match = _INDIAN_MOBILE.match(_SEPARATORS.sub('', value or ''))
    return match.group(1) if match else None


def validate_phone_number(value):
    """
    Accept Indian mobile numbers as farmers and storage operators give them:
    ``+91 98765 43210``, ``098765-43210``, ``9876543210``.

    Blank is allowed; the field is optional.
    """
    if not value:
        return

    if normalize_phone_number(value) is None:
        raise ValidationError(
            'Enter a 10-digit Indian mobile number, optionally prefixed with +91 or 0.',
            code='invalid_phone_number'
        )
