"""
ORM guards for append-only financial records.

- LedgerEntry: only `status` may change after insert, and only forward
  (PENDING -> PROCESSING -> SETTLED). The committed status is always
  loaded (active_history), so expired rows are checked too. Rows are
  never deleted.
- PlatformInvoice: immutable once issued apart from ISSUED -> PAID when
  the payout is created; never deleted.

Bulk `query.update()` bypasses these listeners; repositories update rows
one object at a time so the checks always run.
"""

import logging
from sqlalchemy import event, inspect
from merceton_billing.domain.exceptions import ImmutableRecordError, InvalidStatusTransition
from merceton_billing.domain.ledger import assert_transition
from merceton_billing.infrastructure.database.models import LedgerEntry, PlatformInvoice

logger = logging.getLogger(__name__)

LEDGER_MUTABLE_FIELDS = frozenset({"status"})

# Paying out an invoice is the only change an issued invoice accepts
INVOICE_STATUS_TRANSITIONS = {"ISSUED": frozenset({"PAID"})}


def _blocked(entity: str, target, operation: str, reason: str) -> ImmutableRecordError:
    logger.error(
        "Immutability violation blocked",
        extra={"entity_type": entity, "entity_id": str(target.id), "operation": operation},
    )
    return ImmutableRecordError(entity, str(target.id), reason)


def _changed_columns(target):
    state = inspect(target)
    for prop in state.mapper.column_attrs:
        history = state.attrs[prop.key].history
        if history.has_changes():
            yield prop.key, history


def _previous_and_new(history):
    if not history.deleted or not history.added:
        return None
    return history.deleted[0], history.added[0]


def _check_ledger_entry_update(mapper, connection, target):
    for key, history in _changed_columns(target):
        if key not in LEDGER_MUTABLE_FIELDS:
            raise _blocked("LedgerEntry", target, "UPDATE", f"Cannot modify field '{key}'")
        change = _previous_and_new(history)
        if change is None:
            raise _blocked("LedgerEntry", target, "UPDATE", "Previous status could not be resolved")
        assert_transition(*change)


def _check_ledger_entry_delete(mapper, connection, target):
    raise _blocked("LedgerEntry", target, "DELETE", "Ledger entries cannot be deleted")


def _check_invoice_update(mapper, connection, target):
    for key, history in _changed_columns(target):
        if key != "status":
            raise _blocked("PlatformInvoice", target, "UPDATE", f"Issued invoices are immutable ({key})")
        change = _previous_and_new(history)
        if change is None or change[1] not in INVOICE_STATUS_TRANSITIONS.get(change[0], ()):
            previous, requested = change or ("unknown", history.added[0] if history.added else None)
            raise InvalidStatusTransition("PlatformInvoice", str(previous), str(requested))


def _check_invoice_delete(mapper, connection, target):
    raise _blocked("PlatformInvoice", target, "DELETE", "Issued invoices cannot be deleted")


_LISTENERS = [
    (LedgerEntry, "before_update", _check_ledger_entry_update),
    (LedgerEntry, "before_delete", _check_ledger_entry_delete),
    (PlatformInvoice, "before_update", _check_invoice_update),
    (PlatformInvoice, "before_delete", _check_invoice_delete),
]


def register_guards() -> None:
    """Attach the listeners (idempotent)"""
    for model, identifier, fn in _LISTENERS:
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)
