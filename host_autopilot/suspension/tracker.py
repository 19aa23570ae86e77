"""
Suspension Tracker — finds apps whose hosting invoices are overdue.

Behavioral Contract:
- Only pending invoices with a hosting proof-of-service are considered
- An invoice is overdue when its expiration date is strictly in the past
- The invoiced app id comes from the invoice note (YAML). Notes that do not
  decode are logged and skipped, never fatal
- The result is a set: recomputed every run, never persisted
"""

import logging
from typing import FrozenSet, Optional

import yaml
from pydantic import ValidationError

from host_autopilot.models.transactions import InvoiceNote, PendingTransaction, Transaction
from host_autopilot.registry.gateway import RegistryGateway
from host_autopilot.rpc.signed_client import now_micros

logger = logging.getLogger(__name__)


def parse_invoice_note(note: str) -> InvoiceNote:
    """Decode a YAML invoice note. Raises ValueError when it is not one."""
    try:
        data = yaml.safe_load(note)
    except yaml.YAMLError as exc:
        raise ValueError(f"invoice note is not YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"invoice note is not a mapping: {data!r}")
    try:
        return InvoiceNote.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"invoice note has an unexpected shape: {exc}") from exc


def _is_overdue(invoice: Transaction, now_us: int) -> bool:
    return (
        invoice.is_hosting_invoice
        and invoice.expiration_date is not None
        and invoice.expiration_date < now_us
    )


def find_suspended_apps(
    pending: PendingTransaction,
    now_us: Optional[int] = None,
) -> FrozenSet[str]:
    """App ids with at least one overdue hosting invoice."""
    if now_us is None:
        now_us = now_micros()

    suspended = set()
    for invoice in pending.invoice_pending:
        if not _is_overdue(invoice, now_us) or not invoice.note:
            continue
        try:
            note = parse_invoice_note(invoice.note)
        except ValueError as exc:
            logger.error("skipping invoice %s: %s", invoice.id, exc)
            continue
        suspended.add(note.hha_id)

    return frozenset(suspended)


class SuspensionTracker:
    """Fetches pending transactions and scans them for overdue invoices."""

    def __init__(self, registry: RegistryGateway):
        self.registry = registry

    def suspended_apps(self, now_us: Optional[int] = None) -> FrozenSet[str]:
        pending = self.registry.get_pending_transactions()
        suspended = find_suspended_apps(pending, now_us)
        if suspended:
            logger.info("apps suspended for unpaid invoices: %s", sorted(suspended))
        return suspended
