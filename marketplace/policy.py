"""
policy.py - Policy Store

Administrative operations on the marketplace Policy. The policy is a frozen
value held by MarketState; every operation validates its input and replaces
the whole value, so a rejected call leaves the previous policy untouched.

Only the administrative principal may call these operations.
"""

from __future__ import annotations
from dataclasses import replace

from .core import (
    Principal, COMMISSION_DENOMINATOR,
    NotAuthorized, InvalidArgument,
    is_zero_principal,
)
from .notifications import NotificationKind
from .records import Policy, TransactionScope


def validate_commission_percent(percent: int) -> int:
    if isinstance(percent, bool) or not isinstance(percent, int):
        raise InvalidArgument(f"commission percent must be an int, got {type(percent).__name__}")
    if not 0 <= percent <= COMMISSION_DENOMINATOR:
        raise InvalidArgument(
            f"commission percent must be in [0, {COMMISSION_DENOMINATOR}], got {percent}"
        )
    return percent


def validate_recipient(recipient: Principal) -> Principal:
    if not isinstance(recipient, str) or is_zero_principal(recipient):
        raise InvalidArgument(f"commission recipient must be a non-zero principal, got {recipient!r}")
    return recipient


def default_policy(admin: Principal, commission_percent: int = 0, commission_recipient: Principal = None) -> Policy:
    """Initial policy: commission to the admin unless another recipient is given."""
    return Policy(
        commission_percent=validate_commission_percent(commission_percent),
        commission_recipient=validate_recipient(commission_recipient or admin),
    )


def _require_admin(scope: TransactionScope, caller: Principal) -> None:
    if caller != scope.admin:
        raise NotAuthorized(f"{caller} is not the marketplace admin")


def _replace_policy(scope: TransactionScope, **changes) -> Policy:
    old = scope.state.policy
    new = replace(old, **changes)
    scope.state.policy = new
    scope.emit(
        NotificationKind.POLICY_UPDATED,
        commission_percent=new.commission_percent,
        commission_recipient=new.commission_recipient,
        accepted_collections=tuple(sorted(new.accepted_collections)),
    )
    return new


def set_commission(scope: TransactionScope, caller: Principal, percent: int) -> Policy:
    _require_admin(scope, caller)
    return _replace_policy(scope, commission_percent=validate_commission_percent(percent))


def set_bank_address(scope: TransactionScope, caller: Principal, addr: Principal) -> Policy:
    """Set the principal that receives commissions."""
    _require_admin(scope, caller)
    return _replace_policy(scope, commission_recipient=validate_recipient(addr))


def restrict_to_contract(scope: TransactionScope, caller: Principal, collection: str) -> Policy:
    """
    Add a collection to the allowlist.

    Once the allowlist is non-empty, only collections on it may be listed.
    Existing listings are not affected.
    """
    _require_admin(scope, caller)
    if not isinstance(collection, str) or not collection.strip():
        raise InvalidArgument("collection cannot be empty")
    accepted = scope.state.policy.accepted_collections | {collection}
    return _replace_policy(scope, accepted_collections=frozenset(accepted))


def accept_all_contracts(scope: TransactionScope, caller: Principal) -> Policy:
    """Clear the allowlist so every collection may be listed."""
    _require_admin(scope, caller)
    return _replace_policy(scope, accepted_collections=frozenset())
