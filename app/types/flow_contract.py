"""Pydantic models for conversation state and button payloads.

A session is exactly one of the wizard states below, discriminated by
``mode``. States are frozen: every transition builds a new one with
``model_copy(update=...)`` and hands it to the session manager.
"""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from typing_extensions import Annotated

from config import settings


class ReminderStep(IntEnum):
    TEXT = 1
    TIME = 2


class SingleStep(IntEnum):
    REPLY = 1


class ReportStep(IntEnum):
    TITLE = 1
    COMPLETION = 2
    REPORT_TIME = 3
    RECEIVE_TIME = 4
    DONE_TIME = 5
    NOTES = 6
    PREVIEW = 7


class ReportDraft(BaseModel):
    """Working record for the report wizards."""

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    completion_summary: Optional[str] = None
    report_time: Optional[datetime] = None
    receive_time: Optional[datetime] = None
    done_time: Optional[datetime] = None
    notes: Optional[str] = None


# ──────────────────────────────
# Wizard states
# ──────────────────────────────


class _State(BaseModel):
    model_config = ConfigDict(frozen=True)


class CreateReminderState(_State):
    mode: Literal["create_reminder"] = "create_reminder"
    step: ReminderStep = ReminderStep.TEXT
    text: Optional[str] = None
    # set when the note was already stored by the "ingatkan ..." shortcut
    reminder_id: Optional[int] = None


class ConfirmNextState(_State):
    """A time for *today* had passed; waiting for "ya" to move it to tomorrow."""

    mode: Literal["confirm_next_for_reminder"] = "confirm_next_for_reminder"
    step: SingleStep = SingleStep.REPLY
    text: str
    candidate: datetime
    reminder_id: Optional[int] = None

    @property
    def hhmm(self) -> str:
        # candidate is already in the zone it was resolved in
        return self.candidate.strftime("%H:%M")


class AwaitTimeState(_State):
    mode: Literal["await_time_for_note"] = "await_time_for_note"
    step: SingleStep = SingleStep.REPLY
    reminder_id: int


class EditNoteTextState(_State):
    mode: Literal["edit_note_text"] = "edit_note_text"
    step: SingleStep = SingleStep.REPLY
    reminder_id: int


class EditNoteTimeState(_State):
    mode: Literal["edit_note_time"] = "edit_note_time"
    step: SingleStep = SingleStep.REPLY
    reminder_id: int


class CreateReportState(_State):
    mode: Literal["create_report"] = "create_report"
    step: ReportStep = ReportStep.TITLE
    data: ReportDraft = Field(default_factory=ReportDraft)
    awaiting_custom: Optional[str] = None


class EditReportState(_State):
    mode: Literal["edit_report"] = "edit_report"
    step: ReportStep = ReportStep.TITLE
    report_id: int
    data: ReportDraft = Field(default_factory=ReportDraft)
    awaiting_custom: Optional[str] = None


WizardState = Annotated[
    Union[
        CreateReminderState,
        ConfirmNextState,
        AwaitTimeState,
        EditNoteTextState,
        EditNoteTimeState,
        CreateReportState,
        EditReportState,
    ],
    Field(discriminator="mode"),
]

wizard_state_adapter = TypeAdapter(WizardState)

ReportState = Union[CreateReportState, EditReportState]


# ──────────────────────────────
# Button payloads
# ──────────────────────────────

# field tag -> (owning wizard mode, draft attribute)
PRESET_FIELDS: dict[str, tuple[str, str]] = {
    "report_time": ("create_report", "report_time"),
    "receive_time": ("create_report", "receive_time"),
    "done_time": ("create_report", "done_time"),
    "edit_report_time": ("edit_report", "report_time"),
    "edit_receive_time": ("edit_report", "receive_time"),
    "edit_done_time": ("edit_report", "done_time"),
}

PRESET_PREFIX = "preset"
CONFIRM_SAVE = "report_confirm_save"
CONFIRM_CANCEL = "report_confirm_cancel"


class PresetSelection(BaseModel):
    """Payload of a preset time button: ``preset|<field_tag>|<preset_tag>``."""

    field_tag: str
    preset_tag: str

    @field_validator("field_tag")
    def _known_field(cls, v):  # noqa: N805
        if v not in PRESET_FIELDS:
            raise ValueError(f"unknown preset field '{v}'")
        return v

    @field_validator("preset_tag")
    def _known_preset(cls, v):  # noqa: N805
        if v not in settings.PRESET_TAGS:
            raise ValueError(f"unknown preset '{v}'")
        return v

    @classmethod
    def from_callback(cls, data: str) -> "PresetSelection":
        parts = data.split("|")
        if len(parts) != 3 or parts[0] != PRESET_PREFIX:
            raise ValueError(f"not a preset payload: {data!r}")
        return cls(field_tag=parts[1], preset_tag=parts[2])

    def to_callback(self) -> str:
        return f"{PRESET_PREFIX}|{self.field_tag}|{self.preset_tag}"

    @property
    def mode(self) -> str:
        return PRESET_FIELDS[self.field_tag][0]

    @property
    def attribute(self) -> str:
        return PRESET_FIELDS[self.field_tag][1]
