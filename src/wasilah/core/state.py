"""Export job lifecycle state machine.

pending -> processing -> completed | failed | cancelled

``fail`` and ``cancel`` are also accepted from pending. Terminal states
accept no trigger.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from transitions import Machine

from wasilah.core.exceptions import StateTransitionError
from wasilah.data.models import JobStatus
from wasilah.utils.logging import get_logger

TRANSITIONS: list[dict[str, Any]] = [
    {
        "trigger": "start",
        "source": JobStatus.PENDING.value,
        "dest": JobStatus.PROCESSING.value,
    },
    {
        "trigger": "complete",
        "source": JobStatus.PROCESSING.value,
        "dest": JobStatus.COMPLETED.value,
    },
    {
        "trigger": "fail",
        "source": [JobStatus.PENDING.value, JobStatus.PROCESSING.value],
        "dest": JobStatus.FAILED.value,
    },
    {
        "trigger": "cancel",
        "source": [JobStatus.PENDING.value, JobStatus.PROCESSING.value],
        "dest": JobStatus.CANCELLED.value,
    },
]


class JobStateMachine:
    """Finite state machine for one export job.

    Parameters
    ----------
    job_id : str
        Identifier bound into logs for traceability.
    initial : JobStatus
        Starting state; jobs restored from history resume in their stored state.
    on_transition : Callable[[JobStatus], None] | None
        Called with the new state after every successful transition.
    """

    def __init__(
        self,
        job_id: str,
        initial: JobStatus = JobStatus.PENDING,
        on_transition: Callable[[JobStatus], None] | None = None,
    ) -> None:
        self.job_id = job_id
        self.logger = get_logger("export.state").bind(job_id=job_id)
        self.history: list[str] = [JobStatus(initial).value]
        self.state: str = JobStatus(initial).value
        self._on_transition = on_transition

        self._machine = Machine(
            model=self,
            states=[status.value for status in JobStatus],
            transitions=TRANSITIONS,
            initial=JobStatus(initial).value,
            auto_transitions=False,
            ignore_invalid_triggers=True,
            after_state_change=self._record_transition,
            send_event=False,
        )

    def _record_transition(self) -> None:
        self.history.append(self.state)
        self.logger.debug("state.transition", state=self.state)
        if self._on_transition is not None:
            self._on_transition(self.status)

    @property
    def status(self) -> JobStatus:
        return JobStatus(self.state)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def available_triggers(self) -> list[str]:
        return list(self._machine.get_triggers(self.state))

    def can(self, trigger: str) -> bool:
        return trigger in self.available_triggers()

    def fire(self, trigger: str) -> JobStatus:
        """Apply a trigger, raising StateTransitionError if it is not allowed."""
        if not self.can(trigger):
            raise StateTransitionError(
                f"Cannot {trigger} job {self.job_id} in state '{self.state}'",
                from_state=self.state,
                trigger=trigger,
            )
        getattr(self, trigger)()
        return self.status
