"""
Account provisioning endpoints — the master → admin → user hierarchy.

- POST /accounts/admins   master only; parent fixed by the access policy
- POST /accounts/users    master or admin; parent is the caller
- GET  /accounts?role=    master (any role) or admin (its own users)
- DELETE /accounts/{id}   cascades to descendants and their reservations
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from ems.api.v1.deps import get_account_store, get_identity, get_policy
from ems.core.exceptions import NotFoundError
from ems.core.identity import Identity, Role
from ems.core.scoping import (AccessPolicy, account_delete_scope,
                              account_list_scope, admin_parent_for,
                              user_parent_for)
from ems.models.account import Account
from ems.schemas.account import AccountCreate, AccountRead
from ems.schemas.reservation import DeleteResponse
from ems.services.account_store import AccountStore

router = APIRouter(prefix="/accounts", tags=["accounts"])
logger = logging.getLogger(__name__)


@router.post("/admins", response_model=AccountRead, status_code=201)
async def create_admin(
    body: AccountCreate,
    identity: Identity | None = Depends(get_identity),
    policy: AccessPolicy = Depends(get_policy),
    accounts: AccountStore = Depends(get_account_store),
) -> Account:
    parent_id = admin_parent_for(identity, policy)
    return await accounts.create(body.username, body.password, Role.ADMIN, parent_id)


@router.post("/users", response_model=AccountRead, status_code=201)
async def create_user(
    body: AccountCreate,
    identity: Identity | None = Depends(get_identity),
    accounts: AccountStore = Depends(get_account_store),
) -> Account:
    parent_id = user_parent_for(identity)
    return await accounts.create(body.username, body.password, Role.USER, parent_id)


@router.get("", response_model=list[AccountRead])
async def list_accounts(
    role: str | None = Query(default=None, description="master | admin | user (required)"),
    identity: Identity | None = Depends(get_identity),
    accounts: AccountStore = Depends(get_account_store),
) -> list[Account]:
    return await accounts.list_by_role(account_list_scope(identity, role))


@router.delete("/{account_id}", response_model=DeleteResponse)
async def delete_account(
    account_id: int,
    identity: Identity | None = Depends(get_identity),
    accounts: AccountStore = Depends(get_account_store),
) -> DeleteResponse:
    scope = account_delete_scope(identity)
    if not await accounts.delete(account_id, scope):
        raise NotFoundError("Account not found")
    logger.info("Account %d deleted account %d", identity.id, account_id)
    return DeleteResponse(success=True, message=f"Account {account_id} deleted")
