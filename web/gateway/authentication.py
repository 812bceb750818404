"""Bearer-token authentication and the staff permission.

Tokens are configured in ``settings.API_TOKENS`` as a mapping of token to
``{"sub": ..., "roles": [...]}``. ``authenticate_token`` is the single
capability check; the DRF authentication class only extracts the token
from the ``Authorization`` header and delegates to it.
"""

import hmac
from dataclasses import dataclass, field

from django.conf import settings
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import BasePermission

STAFF_ROLE = "staff"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller.

    Attributes:
        subject: Identifier of the caller (for example an e-mail address).
        roles: Roles granted to the token.
    """

    subject: str
    roles: frozenset = field(default_factory=frozenset)

    # DRF permission helpers read these attributes on request.user
    is_authenticated = True
    is_anonymous = False

    @property
    def pk(self) -> str:
        # throttles key authenticated callers on request.user.pk
        return self.subject

    def has_role(self, role: str) -> bool:
        return role in self.roles


def authenticate_token(token: str) -> Principal:
    """Resolve a bearer token to a ``Principal``.

    Raises:
        AuthenticationFailed: If the token is unknown.
    """
    tokens = getattr(settings, "API_TOKENS", {}) or {}
    for known, claims in tokens.items():
        if hmac.compare_digest(known.encode("utf-8"), token.encode("utf-8")):
            return Principal(
                subject=str(claims.get("sub", "unknown")),
                roles=frozenset(claims.get("roles", [])),
            )
    raise AuthenticationFailed("Invalid token.")


class BearerTokenAuthentication(BaseAuthentication):
    keyword = "Bearer"

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None
        if len(auth) != 2:
            raise AuthenticationFailed("Invalid Authorization header.")
        try:
            token = auth[1].decode()
        except UnicodeError:
            raise AuthenticationFailed("Invalid token.") from None
        return authenticate_token(token), token

    def authenticate_header(self, request):
        return self.keyword


class IsStaff(BasePermission):
    """Allow only principals holding the staff role."""

    def has_permission(self, request, view):
        user = request.user
        return isinstance(user, Principal) and user.has_role(STAFF_ROLE)
