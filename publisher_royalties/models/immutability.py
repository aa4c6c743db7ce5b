"""
ORM listeners keeping statements and ledger entries append-only.

Statement: only the status lifecycle columns (status, sent_at, paid_at) may
change after insert. AdvanceLedgerEntry: never updated. Neither is deleted.

Listeners fire before the SQL is emitted, so a rejected flush leaves the
database untouched.
"""
import logging

from sqlalchemy import event, inspect

from publisher_royalties.core.exceptions import DataIntegrityError
from publisher_royalties.models.advance_ledger import AdvanceLedgerEntry
from publisher_royalties.models.statement import Statement

logger = logging.getLogger(__name__)


def _changed_columns(target) -> set[str]:
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


@event.listens_for(Statement, "before_update")
def _check_statement_update(mapper, connection, target):
    frozen = _changed_columns(target) - Statement.MUTABLE_COLUMNS
    if frozen:
        logger.error(f"Blocked update of statement {target.id}: {sorted(frozen)}")
        raise DataIntegrityError(
            "Statements are immutable; issue a superseding statement instead",
            statement_id=str(target.id),
            columns=sorted(frozen),
        )


@event.listens_for(Statement, "before_delete")
def _check_statement_delete(mapper, connection, target):
    logger.error(f"Blocked delete of statement {target.id}")
    raise DataIntegrityError("Statements cannot be deleted", statement_id=str(target.id))


@event.listens_for(AdvanceLedgerEntry, "before_update")
def _check_ledger_update(mapper, connection, target):
    if not _changed_columns(target):
        return
    logger.error(f"Blocked update of ledger entry {target.id}")
    raise DataIntegrityError(
        "Advance ledger entries are append-only; record a new entry instead",
        entry_id=str(target.id),
    )


@event.listens_for(AdvanceLedgerEntry, "before_delete")
def _check_ledger_delete(mapper, connection, target):
    logger.error(f"Blocked delete of ledger entry {target.id}")
    raise DataIntegrityError("Advance ledger entries cannot be deleted", entry_id=str(target.id))
