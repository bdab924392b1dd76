"""
Email login for marketplace accounts.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()

MARKETPLACE_ROLES = frozenset(role for role, _ in User.ROLE_CHOICES)


def normalize_login_email(value):
    """Emails are stored lowercased (see ``User.save``); compare the same way."""
    return User.objects.normalize_email(value.strip()).lower()


class EmailBackend(ModelBackend):
    """
    Authenticate by email address instead of username.

    simplejwt's token serializer passes ``email=``; Django's login forms pass
    ``username=``. Either is treated as the email. Accounts without one of the
    marketplace roles are refused even with the right password.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        login = email or username
        if not login or password is None:
            return None

        user = User.objects.filter(email=normalize_login_email(login)).first()
        if user is None:
            # Hash anyway so unknown emails take as long as wrong passwords
            User().set_password(password)
            return None

        if not user.check_password(password):
            return None
        return user if self.user_can_authenticate(user) else None

    def user_can_authenticate(self, user):
        return super().user_can_authenticate(user) and user.role in MARKETPLACE_ROLES
