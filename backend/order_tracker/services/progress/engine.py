"""Progress transition engine.

This module implements the ProgressTransitionEngine, the only writer of the
progress ledger. It validates a requested stage status change, stamps
``started_at`` and ``completed_at``, upserts the row and completes every
earlier stage of the order when the target stage is started or completed.
The engine never queues notifications; callers decide that from the
returned TransitionResult.
"""

import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from order_tracker.core.logging import get_logger
from order_tracker.services.progress.enums import (
    StageStatus,
    validate_stage_status_transition,
)
from order_tracker.services.progress.exceptions import (
    ImmutableStateError,
    InvalidStageError,
    StorageError,
)
from order_tracker.services.progress.ports import ProgressLedger, StageCatalog
from order_tracker.services.progress.records import (
    ProgressRecord,
    ProgressTransition,
    StageRecord,
    TransitionResult,
)

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressTransitionEngine:
    """Applies stage status changes to the progress ledger.

    Reaching a stage (in_progress or completed) implies every stage with a
    lower sort_order is completed. Completed rows are never downgraded and
    their timestamps are never rewritten.
    """

    def __init__(
        self,
        catalog: StageCatalog,
        ledger: ProgressLedger,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize engine with its collaborators.

        Args:
            catalog: Stage catalog used for lookups and ordering
            ledger: Progress ledger storage
            clock: Callable returning the current time (UTC)
        """
        self.catalog = catalog
        self.ledger = ledger
        self._clock = clock or utc_now

    async def get_stage(self, stage_id: int) -> StageRecord:
        """Resolve a stage id.

        Raises:
            InvalidStageError: If the stage does not exist
        """
        stage = await self.catalog.get_stage(stage_id)
        if stage is None:
            raise InvalidStageError(
                f"Stage {stage_id} does not exist",
                stage_id=stage_id,
            )
        return stage

    async def apply_transition(
        self,
        order_id: uuid.UUID,
        transition: ProgressTransition,
        stage: Optional[StageRecord] = None,
    ) -> TransitionResult:
        """Apply a status change for one (order, stage) pair.

        Args:
            order_id: Order to update
            transition: Requested change
            stage: Already resolved stage, to skip the catalog lookup

        Returns:
            TransitionResult with the previous status, the stored row and
            the outcome of the cascade

        Raises:
            InvalidStageError: If the stage does not exist
            ImmutableStateError: If the stage is completed and the new
                status is not completed
            StorageError: If the target row cannot be read or written
        """
        if stage is None:
            stage = await self.get_stage(transition.stage_id)

        new_status: StageStatus = transition.status
        existing = await self.ledger.get_progress(order_id, stage.id)
        current = existing or ProgressRecord.not_started(order_id, stage.id)
        previous_status = current.status

        effective_status = (
            StageStatus.COMPLETED if current.is_completed else current.status
        )
        if not validate_stage_status_transition(effective_status, new_status):
            logger.warning(
                "Rejected change of completed stage",
                order_id=str(order_id),
                stage_id=stage.id,
                requested_status=new_status.value,
                completed_at=current.completed_at.isoformat(),
            )
            raise ImmutableStateError(
                "Cannot change status of a completed stage",
                order_id=str(order_id),
                stage_id=stage.id,
                requested_status=new_status.value,
            )

        now = self._clock()
        updated = current.copy(status=new_status)
        if transition.overwrite_details:
            updated.estimated_start_date = transition.estimated_start_date
            updated.estimated_end_date = transition.estimated_end_date
            updated.admin_notes = transition.admin_notes
        if new_status.implies_prior_completion() and updated.started_at is None:
            updated.started_at = now
        if new_status == StageStatus.COMPLETED and updated.completed_at is None:
            updated.completed_at = now

        if existing is not None and updated == existing:
            logger.debug(
                "No-op progress transition",
                order_id=str(order_id),
                stage_id=stage.id,
                status=new_status.value,
            )
            stored = existing
        else:
            stored = await self.ledger.upsert_progress(updated)
            logger.info(
                "Progress transition applied",
                order_id=str(order_id),
                stage_id=stage.id,
                stage_name=stage.name,
                previous_status=previous_status.value,
                new_status=new_status.value,
            )

        result = TransitionResult(previous_status=previous_status, record=stored)

        if new_status.implies_prior_completion():
            await self._complete_prior_stages(order_id, stage, now, result)

        return result

    async def _complete_prior_stages(
        self,
        order_id: uuid.UUID,
        stage: StageRecord,
        now: datetime,
        result: TransitionResult,
    ) -> None:
        """Force every earlier, not yet completed stage to completed.

        Failures are logged and collected on the result; the target stage
        stays written.
        """
        prior_stages = await self.catalog.list_stages_before(stage.sort_order)
        if not prior_stages:
            return

        try:
            rows = await self.ledger.list_progress([order_id])
        except StorageError as e:
            logger.error(
                "Cascade completion failed to load prior progress",
                order_id=str(order_id),
                stage_id=stage.id,
                error=str(e),
            )
            result.cascade_failures.extend(s.id for s in prior_stages)
            return

        by_stage: Dict[int, ProgressRecord] = {row.stage_id: row for row in rows}
        for prior in prior_stages:
            row = by_stage.get(prior.id)
            if row is not None and row.is_completed:
                continue

            base = row or ProgressRecord.not_started(order_id, prior.id)
            completed = base.copy(
                status=StageStatus.COMPLETED,
                started_at=base.started_at or now,
                completed_at=now,
            )
            try:
                await self.ledger.upsert_progress(completed)
            except StorageError as e:
                logger.error(
                    "Cascade completion failed for prior stage",
                    order_id=str(order_id),
                    stage_id=prior.id,
                    target_stage_id=stage.id,
                    error=str(e),
                )
                result.cascade_failures.append(prior.id)
                continue
            result.cascaded_stage_ids.append(prior.id)

        if result.cascaded_stage_ids:
            logger.info(
                "Cascade completed prior stages",
                order_id=str(order_id),
                target_stage_id=stage.id,
                completed_stage_ids=result.cascaded_stage_ids,
                failed_stage_ids=result.cascade_failures,
            )

    async def initialize_order(
        self,
        order_id: uuid.UUID,
        precomplete_first_stage: bool = False,
    ) -> int:
        """Create one not_started row per stage for a new order.

        Existing rows are left untouched.

        Args:
            order_id: Order to initialize
            precomplete_first_stage: Create the lowest sort_order stage as
                completed (CSV import)

        Returns:
            Number of rows created
        """
        stages = await self.catalog.list_stages()
        now = self._clock()
        records: List[ProgressRecord] = []
        for index, stage in enumerate(stages):
            if precomplete_first_stage and index == 0:
                records.append(
                    ProgressRecord(
                        order_id=order_id,
                        stage_id=stage.id,
                        status=StageStatus.COMPLETED,
                        started_at=now,
                        completed_at=now,
                    )
                )
            else:
                records.append(ProgressRecord.not_started(order_id, stage.id))

        created = await self.ledger.insert_missing_progress(records)
        logger.info(
            "Order progress initialized",
            order_id=str(order_id),
            stages=len(stages),
            created=created,
            precomplete_first_stage=precomplete_first_stage,
        )
        return created
