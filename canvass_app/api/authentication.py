import logging

from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication

logger = logging.getLogger(__name__)


class OptionalJWTAuthentication(JWTAuthentication):
    """JWT authentication that treats a missing or unusable token as anonymous.

    Used on endpoints that anonymous visitors may call (reading a public form,
    submitting a response); the service layer decides whether anonymity is
    acceptable for the form in question.
    """

    def authenticate(self, request):
        try:
            return super().authenticate(request)
        except AuthenticationFailed as exc:
            logger.debug("Ignoring unusable bearer token: %s", exc)
            return None
