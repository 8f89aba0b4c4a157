"""Directive Executor: runs queued directives against the timeline engine.

Each call to `execute_next` moves exactly one directive through

    pending -> processing -> completed | failed

Execution is at-most-once: a directive that fails is dropped from the
queue, reported, and never retried or re-queued.
"""

from __future__ import annotations

import logging

from models.directive_models import (
    Directive,
    DirectiveOutcome,
    EditingStatus,
    ExecutionResult,
    GeneratedAsset,
    StatusState,
)

from .directive_handlers import DirectiveContext, dispatch_directive
from .directive_queue import DirectiveQueue

logger = logging.getLogger(__name__)

NO_PENDING_MESSAGE = "No pending directives"


class DirectiveExecutor:
    """Pops directives one at a time and records their outcome."""

    def __init__(self, queue: DirectiveQueue, context: DirectiveContext):
        self.queue = queue
        self.context = context
        self.completed: list[str] = []
        self.failed: list[str] = []
        self.processing: Directive | None = None
        self.last_outcome: DirectiveOutcome | None = None

    def submit(self, directives: list[Directive]) -> None:
        self.queue.submit(directives)
        logger.info(
            "Queued %d directives (%d pending)", len(directives), len(self.queue)
        )

    def execute_next(self) -> ExecutionResult:
        directive = self.queue.pop_next()
        if directive is None:
            return ExecutionResult(success=False, message=NO_PENDING_MESSAGE)

        self.processing = directive
        try:
            outcome, detail = dispatch_directive(directive, self.context)
        finally:
            self.processing = None
        self.last_outcome = outcome

        if outcome == DirectiveOutcome.COMPLETED:
            self.completed.append(directive.directive_id)
            message = f"Directive {directive.directive_id} completed: {directive.description or detail}"
            logger.info(message)
            return ExecutionResult(
                success=True,
                message=message,
                directive_id=directive.directive_id,
                outcome=outcome,
            )

        self.failed.append(directive.directive_id)
        message = f"Failed to execute directive {directive.directive_id}: {detail}"
        logger.warning(message)
        return ExecutionResult(
            success=False,
            message=message,
            directive_id=directive.directive_id,
            outcome=outcome,
        )

    def status(self, session_id: str, assets: list[GeneratedAsset]) -> EditingStatus:
        """Derive the editing status from the queue and outcome lists."""
        pending_ids = self.queue.pending_ids()
        if pending_ids:
            state = StatusState.PROCESSING
        elif not self.queue.has_received:
            state = StatusState.IDLE
        elif self.last_outcome not in (None, DirectiveOutcome.COMPLETED):
            state = StatusState.ERROR
        else:
            state = StatusState.COMPLETED

        if state == StatusState.IDLE:
            message = "Session created"
        else:
            message = f"{len(self.completed)} tasks completed, {len(pending_ids)} pending"
            if self.failed:
                message += f", {len(self.failed)} failed"

        return EditingStatus(
            session_id=session_id,
            current_step=len(self.completed),
            total_steps=len(self.completed) + len(pending_ids),
            status=state,
            message=message,
            completed_directives=list(self.completed),
            pending_directives=pending_ids,
            failed_directives=list(self.failed),
            generated_assets=assets,
        )
