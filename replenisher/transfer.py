"""
Transfer Executor

Race-protected transfer of items from a source container slot into a target.

The slot check and the move run inside a single SafeContainer.call, so
nothing can interleave between "the slot still holds what we scheduled" and
"move it". If an external actor drained or swapped the slot since the
schedule was made, the transfer fails with SLOT_CHANGED and moves nothing.
"""

import logging

from .containers import Container, SafeContainer
from .errors import ErrorKind, Result
from .models import TransferOutcome


def execute_transfer(
    source: SafeContainer,
    target_name: str,
    source_slot: int,
    expected_item_id: str,
    amount: int,
    logger: logging.Logger | None = None,
) -> Result[TransferOutcome]:
    """
    Verify `source_slot` still holds `expected_item_id`, then move `amount` to `target_name`.

    Args:
        source: Container to take items from
        target_name: Transport name of the receiving container
        source_slot: Slot the schedule chose
        expected_item_id: Item the schedule expects in that slot
        amount: Items requested

    Returns:
        Result with a TransferOutcome carrying the count actually moved, or
        SLOT_CHANGED, TRANSFER_FAILED or DISCONNECTED
    """
    log = logger or logging.getLogger(__name__)

    def verify_and_move(container: Container) -> tuple[bool, str, int]:
        current = container.peek(source_slot)
        if current is None or current.count <= 0:
            return False, "empty", 0
        if current.item_id != expected_item_id:
            return False, current.item_id, 0
        return True, current.item_id, container.move(target_name, source_slot, amount)

    call_res = source.call(verify_and_move)
    if not call_res.ok:
        return Result.failure(
            ErrorKind.DISCONNECTED,
            "Source disconnected during transfer",
            slot=source_slot,
            source=source.name,
        )

    verified, actual, transferred = call_res.value
    if not verified:
        log.warning(
            "slot changed before transfer: slot=%d expected=%s actual=%s",
            source_slot,
            expected_item_id,
            actual,
        )
        return Result.failure(
            ErrorKind.SLOT_CHANGED,
            "Slot content changed before transfer",
            slot=source_slot,
            expected=expected_item_id,
            actual=actual,
        )

    if transferred <= 0:
        log.warning(
            "transfer moved no items: slot=%d item=%s target=%s",
            source_slot,
            expected_item_id,
            target_name,
        )
        return Result.failure(
            ErrorKind.TRANSFER_FAILED,
            "Move primitive reported zero items",
            source_slot=source_slot,
            reason="no_items_transferred",
        )

    log.debug(
        "transfer complete: target=%s item=%s items=%d slot=%d",
        target_name,
        expected_item_id,
        transferred,
        source_slot,
    )
    return Result.success(TransferOutcome(transferred=transferred, source_slot=source_slot))

