"""Issue tracker: students report problems, admins resolve or delete them."""

from __future__ import annotations
from tracking import t

import copy
import logging
import uuid
from typing import List, Optional

import pytz

from machines.errors import InvalidRequest, IssueNotFound
from machines.models import ReportedIssue, SharedAppState
from machines.registry import locate
from machines.timer import TimerEngine
from state.store import SharedStateStore


class IssueTracker:
    """Append-only log of reported problems with two admin mutations."""

    def __init__(
        self,
        store: SharedStateStore,
        *,
        timer: Optional[TimerEngine] = None,
        timezone: str = 'UTC',
    ) -> None:
        t('issues.tracker.IssueTracker.__init__')
        self.store = store
        self.timer = timer or TimerEngine()
        self.timezone = timezone
        self.logger = logging.getLogger('IssueTracker')

    def report(
        self,
        machine_type: str,
        machine_id: int,
        student_id: str,
        phone: str,
        description: str,
    ) -> str:
        """Record a new issue against an existing machine and return its id."""
        t('issues.tracker.IssueTracker.report')
        text = (description or '').strip()
        if not text:
            raise InvalidRequest("Issue description must not be empty")

        now = self.timer.now()
        with self.store.transaction() as state:
            machine = locate(state, machine_type, machine_id)
            issue = ReportedIssue(
                id=uuid.uuid4().hex,
                machine_type=machine.machine_type.value,
                machine_id=machine.id,
                reported_by=student_id,
                phone=phone,
                description=text,
                timestamp=int(now.timestamp() * 1000),
                date=now.astimezone(pytz.timezone(self.timezone)).strftime('%Y-%m-%d'),
            )
            state.reported_issues.append(issue)

        self.logger.info(f"""ISSUE REPORTED
        Issue ID: {issue.id}
        Machine: {machine.label()}
        Reported by: {student_id}
        Description: {text}
        """)
        return issue.id

    def resolve(self, issue_id: str, resolved: bool = True) -> ReportedIssue:
        t('issues.tracker.IssueTracker.resolve')
        with self.store.transaction() as state:
            issue = self._find(state, issue_id)
            issue.resolved = resolved
            snapshot = copy.copy(issue)
        self.logger.info(f"Issue {issue_id} marked {'resolved' if resolved else 'open'}")
        return snapshot

    def delete(self, issue_id: str) -> None:
        t('issues.tracker.IssueTracker.delete')
        with self.store.transaction() as state:
            issue = self._find(state, issue_id)
            state.reported_issues.remove(issue)
        self.logger.info(f"Deleted issue {issue_id}")

    def list_issues(self, include_resolved: bool = True) -> List[ReportedIssue]:
        t('issues.tracker.IssueTracker.list_issues')
        with self.store.read() as state:
            return [
                copy.copy(issue) for issue in state.reported_issues
                if include_resolved or not issue.resolved
            ]

    @staticmethod
    def _find(state: SharedAppState, issue_id: str) -> ReportedIssue:
        for issue in state.reported_issues:
            if issue.id == issue_id:
                return issue
        raise IssueNotFound(f"Unknown issue {issue_id!r}")
