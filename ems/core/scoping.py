"""
Access scoping — turns an identity descriptor into SQL predicates.

Every function here is a pure function of ``(identity, policy)``: nothing
is fetched, the parent lookups are scalar subqueries evaluated by the
database together with the statement they are attached to. Handlers must
never accept a scope from the client; they pass the authenticated
``Identity`` and apply what comes back.

Reservations
    master  sees everything; manages only if the policy allows it
    admin   sees/manages own rows and rows of its direct users
    user    sees own rows and its parent's rows; manages nothing

Accounts
    master  lists any role, creates admins and users, deletes non-masters
    admin   lists/deletes its own users, creates users under itself
    user    nothing
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from ems.core.config import Settings, settings
from ems.core.exceptions import AuthenticationError, AuthorizationError, ValidationError
from ems.core.identity import Identity, Role
from ems.models.account import Account
from ems.models.reservation import Reservation


@dataclass(frozen=True)
class AccessPolicy:
    master_can_manage_reservations: bool = False
    admin_creation_restricted_to_root_master: bool = True
    root_master_id: int = 1

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "AccessPolicy":
        return cls(
            master_can_manage_reservations=cfg.MASTER_CAN_MANAGE_RESERVATIONS,
            admin_creation_restricted_to_root_master=cfg.ADMIN_CREATION_RESTRICTED_TO_ROOT_MASTER,
            root_master_id=cfg.ROOT_MASTER_ID,
        )


def require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise AuthenticationError()
    return identity


# ── Reservations ────────────────────────────────────────────────────
def _users_of(admin_id: int):
    return select(Account.id).where(
        Account.parent_admin_id == admin_id,
        Account.role == Role.USER.value,
    )


def _parent_of(account_id: int):
    return select(Account.parent_admin_id).where(Account.id == account_id).scalar_subquery()


def reservation_visibility(identity: Identity | None) -> ColumnElement[bool]:
    """Predicate selecting the reservations *identity* may read."""
    identity = require_identity(identity)
    if identity.role is Role.MASTER:
        return true()
    if identity.role is Role.ADMIN:
        return or_(
            Reservation.created_by == identity.id,
            Reservation.created_by.in_(_users_of(identity.id)),
        )
    if identity.role is Role.USER:
        return or_(
            Reservation.created_by == identity.id,
            Reservation.created_by == _parent_of(identity.id),
        )
    raise AuthorizationError()


def can_manage_reservations(identity: Identity | None, policy: AccessPolicy) -> bool:
    if identity is None:
        return False
    if identity.role is Role.ADMIN:
        return True
    return identity.role is Role.MASTER and policy.master_can_manage_reservations


def reservation_write_scope(identity: Identity | None, policy: AccessPolicy) -> ColumnElement[bool]:
    """Predicate selecting the reservations *identity* may update or delete.

    Raises ``AuthorizationError`` when the role may not write at all.
    """
    identity = require_identity(identity)
    if not can_manage_reservations(identity, policy):
        raise AuthorizationError("Your role may not create or modify reservations")
    return reservation_visibility(identity)


def reservation_owner_for(identity: Identity | None, policy: AccessPolicy) -> int:
    """Account id a new reservation is attributed to."""
    identity = require_identity(identity)
    if not can_manage_reservations(identity, policy):
        raise AuthorizationError("Your role may not create or modify reservations")
    return identity.id


# ── Accounts ────────────────────────────────────────────────────────
def account_list_scope(identity: Identity | None, role_filter: str | None) -> ColumnElement[bool]:
    """Predicate for listing accounts; the role filter is mandatory."""
    identity = require_identity(identity)
    if not role_filter:
        raise ValidationError("The role parameter is required")
    wanted = Role.parse(role_filter)
    if wanted is None:
        raise ValidationError(f"Unknown role '{role_filter}'")

    if identity.role is Role.MASTER:
        return Account.role == wanted.value
    if identity.role is Role.ADMIN:
        if wanted is not Role.USER:
            raise AuthorizationError("Admins may only list user accounts")
        return and_(
            Account.role == Role.USER.value,
            Account.parent_admin_id == identity.id,
        )
    raise AuthorizationError()


def account_delete_scope(identity: Identity | None) -> ColumnElement[bool]:
    """Predicate selecting the accounts *identity* may delete."""
    identity = require_identity(identity)
    if identity.role is Role.MASTER:
        return Account.role != Role.MASTER.value
    if identity.role is Role.ADMIN:
        return and_(
            Account.role == Role.USER.value,
            Account.parent_admin_id == identity.id,
        )
    raise AuthorizationError()


def admin_parent_for(identity: Identity | None, policy: AccessPolicy) -> int:
    """Parent id a newly created admin gets."""
    identity = require_identity(identity)
    if identity.role is not Role.MASTER:
        raise AuthorizationError("Only the master account may create admins")
    if policy.admin_creation_restricted_to_root_master:
        return policy.root_master_id
    return identity.id


def user_parent_for(identity: Identity | None) -> int:
    """Parent id a newly created user gets: always its creator."""
    identity = require_identity(identity)
    if identity.role not in (Role.MASTER, Role.ADMIN):
        raise AuthorizationError("Only master or admin accounts may create users")
    return identity.id
