"""
Authentication collaborator contract.

Session handling lives outside this package. The repositories
only need the id of the signed-in account, and they ask for it
on every call so a sign-out takes effect immediately.
"""

from typing import Protocol

from ledger_sync.exceptions import AuthenticationError


class AccountProvider(Protocol):
    def current_account_id(self) -> str | None:
        ...


class StaticAccountProvider:
    """Provides a fixed account id. Set it to None to sign out."""

    def __init__(self, account_id: str | None):
        self.account_id = account_id

    def current_account_id(self) -> str | None:
        return self.account_id


def require_account(provider: AccountProvider) -> str:
    """Return the current account id or raise AuthenticationError."""
    account_id = provider.current_account_id()
    if not account_id:
        raise AuthenticationError("No authenticated account")
    return account_id
