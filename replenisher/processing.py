"""
Chain Processing Engine

Feeds a fixed transformation chain (e.g. cobblestone -> dirt -> gravel ->
sand -> dust) through one shared processing container. For each link, in
order, one stack of the input is moved into the processing container when:

- the processing container has a free slot (otherwise the whole walk stops,
  since every later link would land in the same full container),
- the processing container does not already hold that input,
- input stock covers min_input_reserve + transfer_amount,
- output stock is below max_output_stock.

A failed transfer for one link is logged and the walk moves on to the next.
"""

import logging
from typing import Optional

from .containers import SafeContainer
from .errors import ErrorKind, Result
from .inventory import contains_item, has_free_slot, scan_inventory
from .models import ChainLink, InventorySnapshot, ProcessingConfig, ProcessingTransfer
from .transfer import execute_transfer


class ProcessingEngine:
    """Walks the processing chain once per tick."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)

    def run_phase(
        self,
        config: Optional[ProcessingConfig],
        source: SafeContainer,
        processing_container: Optional[SafeContainer],
        pre_scanned: Optional[InventorySnapshot] = None,
    ) -> Result[list[ProcessingTransfer]]:
        """
        Run the processing phase.

        Returns:
            Result with the transfers made. A disabled or absent config is a
            no-op success; a missing processing container is CONTAINER_MISSING.
        """
        if config is None or not config.enabled:
            return Result.success([], noop=True)

        if processing_container is None:
            self.logger.warning("processing enabled but processing container not available")
            return Result.failure(ErrorKind.CONTAINER_MISSING, "Processing container not available")

        if pre_scanned is not None:
            inventory = pre_scanned.planning_copy()
        else:
            inventory_res = scan_inventory(source)
            if not inventory_res.ok:
                self.logger.warning("source scan failed, skipping processing phase")
                return Result.success([])
            inventory = inventory_res.value

        results = self.process_chain(config, source, processing_container, inventory)

        if results:
            self.logger.info("processing phase complete: transfers=%d", len(results))
        else:
            self.logger.debug("processing phase complete (no transfers)")
        return Result.success(results)

    def process_chain(
        self,
        config: ProcessingConfig,
        source: SafeContainer,
        processing_container: SafeContainer,
        inventory: InventorySnapshot,
    ) -> list[ProcessingTransfer]:
        """Walk the chain in order; `inventory` is consumed as transfers succeed."""
        results: list[ProcessingTransfer] = []

        for link in config.chain:
            space_res = has_free_slot(processing_container)
            if not space_res.ok or not space_res.value:
                self.logger.debug("processing container full, skipping remaining chain")
                break

            present_res = contains_item(processing_container, link.input)
            if not present_res.ok or present_res.value:
                self.logger.debug("processing container already holds input: input=%s", link.input)
                continue

            source_slot = self.select_source_slot(config, inventory, link)
            if source_slot is None:
                continue

            transfer_res = execute_transfer(
                source,
                processing_container.name,
                source_slot,
                link.input,
                config.transfer_amount,
                logger=self.logger,
            )
            if not transfer_res.ok:
                self.logger.warning(
                    "processing transfer failed: input=%s kind=%s",
                    link.input,
                    transfer_res.kind.value,
                )
                continue

            moved = transfer_res.value.transferred
            inventory.consume(link.input, source_slot, moved)
            results.append(
                ProcessingTransfer(
                    input_item_id=link.input,
                    output_item_id=link.output,
                    items_transferred=moved,
                    source_slot=source_slot,
                )
            )
            self.logger.info(
                "processing transfer complete: input=%s output=%s items=%d",
                link.input,
                link.output,
                moved,
            )

        return results

    def select_source_slot(
        self,
        config: ProcessingConfig,
        inventory: InventorySnapshot,
        link: ChainLink,
    ) -> Optional[int]:
        """Source slot for this link, or None when thresholds say skip."""
        required = config.min_input_reserve + config.transfer_amount
        input_count = inventory.total(link.input)
        if input_count < required:
            self.logger.debug(
                "input below threshold: input=%s have=%d required=%d",
                link.input,
                input_count,
                required,
            )
            return None

        output_count = inventory.total(link.output)
        if output_count >= config.max_output_stock:
            self.logger.debug(
                "output at max stock: output=%s have=%d max=%d",
                link.output,
                output_count,
                config.max_output_stock,
            )
            return None

        slot_info = inventory.pick_slot(link.input, config.transfer_amount)
        return slot_info.slot if slot_info else None
