"""
Balance transfer convenience flow.

A fixed-shape form that always sends ``balances.transfer(dest, value)`` as a
signed transaction. The destination can be picked from the account directory
or typed in freely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from pallet_interactor.interactor.dispatch import (
    SIGNED_TX,
    CallDescriptor,
    Dispatcher,
    SubmissionStatus,
)
from pallet_interactor.interactor.metadata import Category

logger = logging.getLogger(__name__)

TRANSFER_NAMESPACE = "balances"
TRANSFER_CALLABLE = "transfer"
# Smallest-unit multiplier shown next to the amount field.
UNIT = 10**14
TRANSFER_HINTS = (
    f"1 Unit = {UNIT}",
    "Transfer more than the existential amount for account with 0 balance",
)


@dataclass(frozen=True, slots=True)
class Account:
    display_name: str
    address: str

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["Account"]:
        if not isinstance(raw, dict):
            return None
        address = raw.get("address")
        if not isinstance(address, str) or not address:
            return None
        name = raw.get("displayName") or raw.get("name")
        if not isinstance(name, str) or not name:
            meta = raw.get("meta")
            name = meta.get("name") if isinstance(meta, dict) else None
        return cls(display_name=name if isinstance(name, str) and name else address, address=address)


def parse_accounts(raw_accounts: Any) -> List[Account]:
    """Keep well-formed directory entries in their original order."""
    if isinstance(raw_accounts, dict):
        raw_accounts = raw_accounts.get("accounts")
    if not isinstance(raw_accounts, list):
        return []
    accounts: List[Account] = []
    for raw in raw_accounts:
        account = Account.from_raw(raw)
        if account is not None:
            accounts.append(account)
    return accounts


def account_choices(accounts: Iterable[Account]) -> List[Dict[str, str]]:
    """Destination chooser entries: label is the display name, value the address."""
    return [
        {"key": account.display_name, "text": account.display_name, "value": account.address}
        for account in accounts
    ]


class TransferForm:
    """Destination plus amount, sent as a signed balances transfer."""

    def __init__(self) -> None:
        self.address_to = ""
        self.amount = "0"

    def set_destination(self, address: str) -> None:
        self.address_to = (address or "").strip()

    def set_amount(self, amount: Any) -> None:
        self.amount = "" if amount is None else str(amount).strip()

    def to_descriptor(self) -> CallDescriptor:
        return CallDescriptor(
            category=Category.EXTRINSIC,
            namespace=TRANSFER_NAMESPACE,
            callable=TRANSFER_CALLABLE,
            args=(self.address_to, self.amount),
        )

    async def submit(self, dispatcher: Dispatcher, *, signer: str) -> SubmissionStatus:
        descriptor = self.to_descriptor()
        logger.info("transfer signer=%s dest=%s amount=%s", signer, self.address_to, self.amount)
        return await dispatcher.submit_descriptor(descriptor, mode=SIGNED_TX, signer=signer)
