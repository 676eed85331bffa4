"""Dispatch table for the named mutations accepted by ``POST /state``."""

from __future__ import annotations
from tracking import t

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Type

from pydantic import BaseModel, ValidationError

from issues.tracker import IssueTracker
from machines.errors import InvalidRequest
from machines.services import MachineReservationService
from waitlists.manager import WaitlistManager
from webapp.payloads import (
    AdminUpdateData,
    IssueDeleteData,
    IssueReportData,
    IssueResolveData,
    MachineLockData,
    OwnerActionData,
    StartMachineData,
    WaitlistData,
)


class UnknownEvent(InvalidRequest):
    code = "unknown_event"


@dataclass(frozen=True)
class EventRoute:
    payload: Type[BaseModel]
    handler: Callable[[Any], Any]


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        problems.append(f"{location or 'data'}: {error.get('msg')}")
    return "; ".join(problems)


class EventDispatcher:
    """Validate an event payload and apply exactly one mutation."""

    def __init__(
        self,
        reservations: MachineReservationService,
        waitlists: WaitlistManager,
        issues: IssueTracker,
    ) -> None:
        t('webapp.events.EventDispatcher.__init__')
        self.logger = logging.getLogger('EventDispatcher')
        self.routes: Dict[str, EventRoute] = {
            'machine-start': EventRoute(StartMachineData, lambda d: reservations.start(
                d.machine_id, d.machine_type, d.mode, d.duration, d.student_id, d.phone,
            )),
            'machine-cancel': EventRoute(OwnerActionData, lambda d: reservations.cancel(
                d.machine_id, d.machine_type, d.student_id,
            )),
            'clothes-collected': EventRoute(OwnerActionData, lambda d: reservations.mark_collected(
                d.machine_id, d.machine_type, d.student_id,
            )),
            'machine-lock': EventRoute(MachineLockData, lambda d: reservations.set_lock(
                d.machine_id, d.machine_type, d.locked,
            )),
            'admin-update-machine': EventRoute(AdminUpdateData, lambda d: reservations.set_maintenance(
                d.machine_id, d.machine_type, d.status,
            )),
            'waitlist-join': EventRoute(WaitlistData, lambda d: waitlists.join(
                d.machine_type, d.student_id, d.phone,
            )),
            'waitlist-leave': EventRoute(WaitlistData, lambda d: waitlists.leave(
                d.machine_type, d.student_id,
            )),
            'issue-report': EventRoute(IssueReportData, lambda d: issues.report(
                d.machine_type, d.machine_id, d.reported_by, d.phone, d.description,
            )),
            'issue-resolve': EventRoute(IssueResolveData, lambda d: issues.resolve(
                d.issue_id, d.resolved,
            )),
            'issue-delete': EventRoute(IssueDeleteData, lambda d: issues.delete(d.issue_id)),
        }

    @property
    def event_names(self):
        return sorted(self.routes)

    def dispatch(self, event: str, data: Mapping[str, Any]) -> Any:
        """
        Apply one named event.

        Raises:
            UnknownEvent: missing or unsupported event name
            InvalidRequest: payload failed validation (nothing is applied)
            LaundryError: any domain failure raised by the service
        """
        t('webapp.events.EventDispatcher.dispatch')
        if not event:
            raise UnknownEvent("Missing event type")
        route = self.routes.get(event)
        if route is None:
            self.logger.warning("Rejected unknown event %r", event)
            raise UnknownEvent(
                f"Unknown event {event!r}; expected one of: {', '.join(self.event_names)}"
            )

        try:
            payload = route.payload.model_validate(dict(data or {}))
        except ValidationError as exc:
            raise InvalidRequest(f"Invalid data for {event}: {_describe_validation_error(exc)}") from exc

        self.logger.debug("Applying event %s: %s", event, payload)
        return route.handler(payload)
