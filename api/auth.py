"""
HTTP Basic authentication for the admin surface.

Credentials come from configuration (NOWSHOWING_ADMIN_USERNAME /
NOWSHOWING_ADMIN_PASSWORD) via app.state.admin_credentials, so tests and
embedders can supply their own. Missing or wrong credentials get a 401 with
a Basic challenge so browsers show their login prompt.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from api.common import get_client_ip
from config import ADMIN_PASSWORD, ADMIN_REALM, ADMIN_USERNAME

security_logger = logging.getLogger("security.admin_auth")

basic_auth = HTTPBasic(realm=ADMIN_REALM, auto_error=False)


@dataclass(frozen=True)
class AdminCredentials:
    username: str = ADMIN_USERNAME
    password: str = ADMIN_PASSWORD
    realm: str = ADMIN_REALM

    def matches(self, username: str, password: str) -> bool:
        # Compare both fields unconditionally so timing does not reveal which one was wrong
        username_ok = hmac.compare_digest(username.encode("utf-8"), self.username.encode("utf-8"))
        password_ok = hmac.compare_digest(password.encode("utf-8"), self.password.encode("utf-8"))
        return username_ok and password_ok


def _challenge(realm: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail="Authentication required",
        headers={"WWW-Authenticate": f'Basic realm="{realm}"'},
    )


def require_admin(
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> str:
    """FastAPI dependency: returns the authenticated admin username or raises 401."""
    expected: AdminCredentials = getattr(request.app.state, "admin_credentials", None) or AdminCredentials()
    client_ip = get_client_ip(request)
    path = request.url.path

    if credentials is None:
        security_logger.warning(
            "Admin auth failed: no credentials",
            extra={"event": "auth_failure", "reason": "no_credentials", "path": path, "client_ip": client_ip},
        )
        raise _challenge(expected.realm)

    if not expected.matches(credentials.username, credentials.password):
        security_logger.warning(
            "Admin auth failed: invalid credentials",
            extra={"event": "auth_failure", "reason": "invalid_credentials", "path": path, "client_ip": client_ip},
        )
        raise _challenge(expected.realm)

    security_logger.info(
        "Admin auth successful",
        extra={"event": "auth_success", "path": path, "client_ip": client_ip},
    )
    return credentials.username
