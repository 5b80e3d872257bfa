import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBasic, HTTPBasicCredentials, HTTPBearer

from invoice_notifier.api.deps import AppSettings

logger = logging.getLogger(__name__)

BEARER = HTTPBearer(auto_error=False)
BASIC = HTTPBasic(auto_error=False, realm="Invoice Notifier Admin")


def _matches(given: str, expected: str) -> bool:
    # An unset secret never authenticates anyone
    if not expected:
        return False
    return hmac.compare_digest(given.encode(), expected.encode())


async def require_api_token(
    settings: AppSettings,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(BEARER),
) -> None:
    if not credentials or not _matches(credentials.credentials, settings.API_TOKEN.get_secret_value()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Unauthorized", "message": "Invalid or missing API token"},
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    settings: AppSettings,
    credentials: Optional[HTTPBasicCredentials] = Security(BASIC),
) -> str:
    if credentials is None:
        valid = False
    else:
        username_ok = _matches(credentials.username, settings.ADMIN_USERNAME)
        password_ok = _matches(credentials.password, settings.ADMIN_PASSWORD.get_secret_value())
        valid = username_ok and password_ok
    if not valid:
        if credentials is not None:
            logger.warning("Rejected admin credentials for user %r", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": 'Basic realm="Invoice Notifier Admin"'},
        )
    return credentials.username
