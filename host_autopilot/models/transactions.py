"""Pending payment transactions, as served by the holofuel transactor zome."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel


class Transaction(BaseModel):
    """A single pending transaction. Read-only."""

    id: str
    amount: str
    fee: str = "0"
    created_date: Optional[int] = None           # Microseconds since epoch
    completed_date: Optional[int] = None
    transaction_type: Optional[str] = None        # "Request" (invoice) | "Offer" (promise)
    counterparty: Optional[str] = None
    direction: Optional[str] = None               # "Outgoing" | "Incoming"
    status: Union[str, Dict[str, Any], None] = None
    note: Optional[str] = None                    # YAML-encoded InvoiceNote for invoices
    proof_of_service: Optional[Dict[str, Any]] = None
    url: Optional[str] = None
    expiration_date: Optional[int] = None         # Microseconds since epoch

    @property
    def is_hosting_invoice(self) -> bool:
        """True when the proof-of-service tag is the hosting variant."""
        if not self.proof_of_service:
            return False
        return any(tag.lower() == "hosting" for tag in self.proof_of_service)


class PendingTransaction(BaseModel):
    invoice_pending: List[Transaction] = []
    promise_pending: List[Transaction] = []
    invoice_declined: List[Transaction] = []
    promise_declined: List[Transaction] = []
    accepted: List[Transaction] = []


class InvoiceNote(BaseModel):
    """The note attached to a hosting invoice."""

    hha_id: str                                   # Invoiced app id
    invoice_period_start: Optional[int] = None
    invoice_period_end: Optional[int] = None
    quantity: Optional[str] = None                # YAML-encoded usage
    prices: Optional[str] = None                  # YAML-encoded prices
