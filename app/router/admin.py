"""Admin account management endpoints.

Every route requires a session belonging to an active, verified admin.
"""

from typing import Annotated

from app.database import Account, AccountResp, AccountRole
from app.dependencies.database import Database
from app.dependencies.rate_limit import LIMITERS
from app.dependencies.user import AdminAccount, get_admin_account
from app.log import log
from app.models.auth import (
    AccountActionRequest,
    AccountListData,
    APIResponse,
    CreateAdminRequest,
    UpdateRoleRequest,
)
from app.models.error import ErrorType, RequestError
from app.service.account_service import AccountService
from app.service.auth import invalidate_account_tokens
from app.service.auth_service import ensure_valid_full_name, ensure_valid_password

from fastapi import APIRouter, Depends, Query

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[*LIMITERS, Depends(get_admin_account)],
)

logger = log("Admin")


def _ensure_not_self(admin: Account, target: Account) -> None:
    if admin.id == target.id:
        raise RequestError(ErrorType.CANNOT_MODIFY_SELF)


@router.get(
    "/users",
    name="List accounts",
    response_model=APIResponse[AccountListData],
)
async def list_users(
    db: Database,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
    role: AccountRole | None = None,
    verified: bool | None = None,
):
    accounts, total = await AccountService.list_accounts(
        db, page=page, per_page=per_page, role=role, verified=verified
    )
    return APIResponse(
        message="Users retrieved successfully",
        data=AccountListData(
            users=[AccountResp.from_db(account) for account in accounts],
            total=total,
            page=page,
            per_page=per_page,
        ),
    )


@router.post(
    "/create-admin",
    name="Create an admin account",
    status_code=201,
    response_model=APIResponse[AccountResp],
    description="Create a verified admin account. No code is sent.",
)
async def create_admin(body: CreateAdminRequest, db: Database, admin: AdminAccount):
    ensure_valid_full_name(body.full_name)
    ensure_valid_password(body.password)
    account = await AccountService.create(
        db, body.full_name, body.email, body.password, role=AccountRole.ADMIN, verified=True
    )
    logger.info(f"{admin.lacpa_id} created admin {account.lacpa_id}")
    return APIResponse(message="Admin account created successfully", data=AccountResp.from_db(account))


@router.post(
    "/update-role",
    name="Change an account's role",
    response_model=APIResponse[AccountResp],
)
async def update_role(body: UpdateRoleRequest, db: Database, admin: AdminAccount):
    target = await AccountService.find_by_login_id(db, body.lacpa_id)
    if body.role != AccountRole.ADMIN:
        _ensure_not_self(admin, target)
    await AccountService.set_role(db, target, body.role)
    logger.info(f"{admin.lacpa_id} set role of {target.lacpa_id} to {body.role}")
    return APIResponse(message=f"User role updated to {body.role}", data=AccountResp.from_db(target))


@router.post(
    "/deactivate-user",
    name="Deactivate an account",
    response_model=APIResponse[AccountResp],
    description="Deactivate an account and log out all of its sessions.",
)
async def deactivate_user(body: AccountActionRequest, db: Database, admin: AdminAccount):
    target = await AccountService.find_by_login_id(db, body.lacpa_id)
    _ensure_not_self(admin, target)
    await AccountService.set_active(db, target, False)
    revoked = await invalidate_account_tokens(db, target.id)  # pyright: ignore[reportArgumentType]
    logger.info(f"{admin.lacpa_id} deactivated {target.lacpa_id}, revoked {revoked} sessions")
    return APIResponse(message="User account deactivated successfully", data=AccountResp.from_db(target))


@router.post(
    "/activate-user",
    name="Activate an account",
    response_model=APIResponse[AccountResp],
)
async def activate_user(body: AccountActionRequest, db: Database, admin: AdminAccount):
    target = await AccountService.find_by_login_id(db, body.lacpa_id)
    await AccountService.set_active(db, target, True)
    logger.info(f"{admin.lacpa_id} activated {target.lacpa_id}")
    return APIResponse(message="User account activated successfully", data=AccountResp.from_db(target))
