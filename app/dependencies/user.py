"""Bearer token dependencies for protected routes.

Every way of failing authentication (no header, wrong scheme, malformed,
tampered, expired or revoked token) produces the same 401 response.
"""

from typing import Annotated

from app.database import Account
from app.dependencies.database import Database
from app.log import log
from app.models.error import ErrorType, RequestError
from app.service.auth import validate_session_token

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = log("Gateway")

security = HTTPBearer(auto_error=False, description="Session token returned by /api/auth/login")


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    if credentials is None or not credentials.credentials:
        logger.debug("Rejected request without bearer token")
        raise RequestError(ErrorType.UNAUTHORIZED)
    return credentials.credentials


BearerToken = Annotated[str, Depends(get_bearer_token)]


async def get_current_account(db: Database, token: BearerToken) -> Account:
    account, _ = await validate_session_token(db, token)
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]


async def get_admin_account(account: CurrentAccount) -> Account:
    if not account.is_admin:
        logger.info(f"Refused admin access to {account.lacpa_id}")
        raise RequestError(ErrorType.INSUFFICIENT_PERMISSIONS)
    return account


AdminAccount = Annotated[Account, Depends(get_admin_account)]
