"""Action variants produced by the decision layer and consumed by the dispatcher."""

from dataclasses import dataclass, field, fields
from typing import ClassVar, Union

TERMINAL_ACTION_TYPES = frozenset({"CREATE_TASK", "CREATE_MEETING", "SAVE_IDEA"})


class _ActionBase:
    type: ClassVar[str]

    def to_dict(self) -> dict:
        payload = {"type": self.type}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            payload[_camel(f.name)] = value
        return payload


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class CreateTask(_ActionBase):
    type: ClassVar[str] = "CREATE_TASK"
    title: str
    due: str | None = None


@dataclass(frozen=True)
class CreateMeeting(_ActionBase):
    type: ClassVar[str] = "CREATE_MEETING"
    title: str
    start: str
    end: str


@dataclass(frozen=True)
class SaveIdea(_ActionBase):
    type: ClassVar[str] = "SAVE_IDEA"
    title: str


@dataclass(frozen=True)
class SendMessage(_ActionBase):
    type: ClassVar[str] = "SEND_MESSAGE"
    message: str


@dataclass(frozen=True)
class RequestFollowup(_ActionBase):
    type: ClassVar[str] = "REQUEST_FOLLOWUP"
    intent_type: str
    title: str
    missing: str
    question: str
    context: str | None = None


Action = Union[CreateTask, CreateMeeting, SaveIdea, SendMessage, RequestFollowup]


@dataclass
class ActionPlan:
    actions: list[Action] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return any(a.type in TERMINAL_ACTION_TYPES for a in self.actions)

    @property
    def action_types(self) -> list[str]:
        return [a.type for a in self.actions]

    def to_dict(self) -> dict:
        return {"actions": [a.to_dict() for a in self.actions]}
