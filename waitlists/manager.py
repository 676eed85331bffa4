"""
Waitlist Management for the laundry room
Keeps one FIFO queue per machine type inside the shared state
"""
from tracking import t

import copy
import logging
from typing import List, Optional, Tuple

from infrastructure.constants import AVERAGE_CYCLE_MINUTES, waitlist_key
from machines.errors import NotOnWaitlist
from machines.machine_validation import ensure_no_active_machine
from machines.models import SharedAppState, WaitlistEntry
from machines.registry import parse_machine_type
from machines.timer import TimerEngine
from notifications.waitlist_notifier import WaitlistNotification, WaitlistNotifier
from state.store import SharedStateStore


class WaitlistManager:
    """
    Manages per-type waitlists stored in the shared state.

    Queue order is insertion order. A student appears at most once per queue;
    joining twice is a no-op that reports the existing position.
    """

    def __init__(
        self,
        store: SharedStateStore,
        *,
        notifier: Optional[WaitlistNotifier] = None,
        timer: Optional[TimerEngine] = None,
    ) -> None:
        t('waitlists.manager.WaitlistManager.__init__')
        self.store = store
        self.notifier = notifier or WaitlistNotifier()
        self.timer = timer or TimerEngine()
        self.logger = logging.getLogger('WaitlistManager')

    def join(self, machine_type: str, student_id: str, phone: str) -> int:
        """
        Add a student to the end of a waitlist

        Args:
            machine_type: 'washer' or 'dryer'
            student_id: Student joining the queue
            phone: Contact number shown to whoever frees the machine

        Returns:
            Zero-based position in the queue

        Raises:
            AlreadyActive: if the student already owns an active machine of this type
        """
        t('waitlists.manager.WaitlistManager.join')
        kind = parse_machine_type(machine_type).value
        with self.store.transaction() as state:
            queue = state.waitlists.setdefault(waitlist_key(kind), [])
            existing = self._position(queue, student_id)
            if existing is not None:
                self.logger.debug(f"Student {student_id} already on {kind} waitlist at {existing}")
                return existing

            ensure_no_active_machine(
                state.machines,
                student_id=student_id,
                machine_type=kind,
                logger=self.logger,
            )

            queue.append(WaitlistEntry(student_id=student_id, phone=phone, joined_at=self.timer.now()))
            position = len(queue) - 1

        self.logger.info(f"""WAITLIST JOINED
        Type: {kind}
        Student: {student_id}
        Position: {position}
        Queue size: {position + 1}
        """)
        return position

    def leave(self, machine_type: str, student_id: str) -> bool:
        """
        Remove a student from a waitlist

        Returns:
            True if the student was queued, False if there was nothing to remove
        """
        t('waitlists.manager.WaitlistManager.leave')
        kind = parse_machine_type(machine_type).value
        with self.store.transaction() as state:
            removed = self._remove(state, kind, student_id)

        if removed:
            self.logger.info(f"Student {student_id} left the {kind} waitlist")
        return removed

    def position_and_estimate(self, machine_type: str, student_id: str) -> Tuple[int, int]:
        """
        Return ``(position, estimated_minutes)`` for a queued student

        The estimate is ``position * average cycle length`` for the type, a
        coarse heuristic rather than a prediction.

        Raises:
            NotOnWaitlist: if the student is not queued for this type
        """
        t('waitlists.manager.WaitlistManager.position_and_estimate')
        kind = parse_machine_type(machine_type).value
        with self.store.read() as state:
            position = self._position(state.waitlists.get(waitlist_key(kind), []), student_id)
        if position is None:
            raise NotOnWaitlist(f"Student {student_id} is not on the {kind} waitlist")
        return position, position * AVERAGE_CYCLE_MINUTES[kind]

    def entries(self, machine_type: str) -> List[WaitlistEntry]:
        t('waitlists.manager.WaitlistManager.entries')
        kind = parse_machine_type(machine_type).value
        with self.store.read() as state:
            return [copy.copy(entry) for entry in state.waitlists.get(waitlist_key(kind), [])]

    def remove_everywhere(self, state: SharedAppState, student_id: str) -> int:
        """Drop a student from every queue; caller holds the store lock."""
        t('waitlists.manager.WaitlistManager.remove_everywhere')
        removed = 0
        for key in list(state.waitlists.keys()):
            before = len(state.waitlists[key])
            state.waitlists[key] = [
                entry for entry in state.waitlists[key] if entry.student_id != student_id
            ]
            removed += before - len(state.waitlists[key])
        if removed:
            self.logger.info(f"Removed student {student_id} from {removed} waitlist(s)")
        return removed

    def notify_head(
        self,
        state: SharedAppState,
        machine_type: str,
        machine_id: Optional[int] = None,
    ) -> Optional[WaitlistNotification]:
        """
        Tell the first student in line that a machine of this type is free

        The entry stays queued; it is removed when that student starts a machine.
        """
        t('waitlists.manager.WaitlistManager.notify_head')
        queue = state.waitlists.get(waitlist_key(machine_type), [])
        if not queue:
            return None

        head = queue[0]
        notification = WaitlistNotification(
            machine_type=machine_type,
            student_id=head.student_id,
            phone=head.phone,
            machine_id=machine_id,
            created_at=self.timer.now(),
            queue_length=len(queue),
        )
        self.notifier.notify(notification)
        return notification

    def _remove(self, state: SharedAppState, machine_type: str, student_id: str) -> bool:
        key = waitlist_key(machine_type)
        queue = state.waitlists.get(key, [])
        remaining = [entry for entry in queue if entry.student_id != student_id]
        state.waitlists[key] = remaining
        return len(remaining) != len(queue)

    @staticmethod
    def _position(queue: List[WaitlistEntry], student_id: str) -> Optional[int]:
        for index, entry in enumerate(queue):
            if entry.student_id == student_id:
                return index
        return None
