"""
Page merge shared by the storage backends.

Backends load the rows they hold, merge one page of provider changes
into them here, and write the result back in a single step. Keeping
the merge pure means every backend gets identical upsert and scoped
delete behavior.
"""

from finledger.models.finance import Transaction, utc_now
from finledger.models.sync import AppliedChanges
from finledger.services.storage.interface import StorageError


def merge_page(
    rows: list[Transaction],
    credential_id: str,
    upserts: list[Transaction],
    removed_ids: list[str],
) -> tuple[list[Transaction], AppliedChanges]:
    """
    Merge a page of provider changes into a list of stored rows.

    Rows of other credentials and manual rows are never touched.
    Returns the new row list (original order kept, inserts appended)
    and the change counts. The input list is not modified.
    """
    for tx in upserts:
        if tx.credential_id != credential_id or tx.provider_transaction_id is None:
            raise StorageError(
                f"Transaction {tx.provider_transaction_id} is outside credential {credential_id}"
            )

    merged = list(rows)
    index = {
        row.provider_transaction_id: pos
        for pos, row in enumerate(merged)
        if row.credential_id == credential_id and row.provider_transaction_id
    }
    changes = AppliedChanges()
    now = utc_now()

    for tx in upserts:
        pos = index.get(tx.provider_transaction_id)
        if pos is None:
            index[tx.provider_transaction_id] = len(merged)
            merged.append(tx)
            changes.inserted += 1
            continue

        existing = merged[pos]
        if existing.same_content(tx):
            changes.unchanged += 1
            continue

        merged[pos] = tx.model_copy(update={
            "id": existing.id,
            "user_id": existing.user_id,
            "created_at": existing.created_at,
            "updated_at": now,
        })
        changes.updated += 1

    removed = set(removed_ids)
    doomed = {pos for ptid, pos in index.items() if ptid in removed}
    if doomed:
        merged = [row for pos, row in enumerate(merged) if pos not in doomed]
        changes.deleted = len(doomed)

    return merged, changes
