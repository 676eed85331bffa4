"""Request payload models for ``POST /state`` events.

Field aliases follow the camelCase keys the polling clients send.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore', str_strip_whitespace=True)


class StateEvent(EventPayload):
    event: str = ''
    data: Dict[str, Any] = Field(default_factory=dict)


class MachineRef(EventPayload):
    machine_id: int = Field(alias='machineId')
    machine_type: str = Field(alias='machineType')


class StartMachineData(MachineRef):
    student_id: str = Field(alias='studentId', min_length=1)
    phone: str = Field(default='', validation_alias=AliasChoices('phoneNumber', 'phone'))
    mode: str = 'Normal'
    duration: Optional[int] = None


class OwnerActionData(MachineRef):
    student_id: str = Field(alias='studentId', min_length=1)


class WaitlistData(EventPayload):
    machine_type: str = Field(alias='machineType')
    student_id: str = Field(alias='studentId', min_length=1)
    phone: str = Field(default='', validation_alias=AliasChoices('phoneNumber', 'phone'))


class IssueReportData(MachineRef):
    reported_by: str = Field(validation_alias=AliasChoices('reportedBy', 'studentId'), min_length=1)
    phone: str = Field(default='', validation_alias=AliasChoices('phone', 'phoneNumber'))
    description: str = ''


class IssueResolveData(EventPayload):
    issue_id: str = Field(alias='issueId', min_length=1)
    resolved: bool = True


class IssueDeleteData(EventPayload):
    issue_id: str = Field(alias='issueId', min_length=1)


class MachineLockData(MachineRef):
    locked: bool


class AdminUpdateData(MachineRef):
    status: str
