"""Tests for decision.decision_engine.decide and the action payloads it builds."""
from datetime import datetime

from actions.types import CreateMeeting, CreateTask, RequestFollowup, SaveIdea, SendMessage
from decision import messages
from decision.decision_engine import decide, fallback_plan
from tools.models import RawIntent

NOW = datetime(2026, 1, 21, 12, 0)


def _raw(**fields) -> RawIntent:
    return RawIntent.model_validate(fields)


class TestTerminalPlans:
    def test_task_plan(self):
        plan = decide(_raw(hypothesis="task", title="call mom", relativeTime="tomorrow"), NOW)
        assert plan.action_types == ["CREATE_TASK", "SEND_MESSAGE"]
        assert plan.actions[0] == CreateTask(title="call mom", due="2026-01-22T23:59:00")
        assert plan.is_terminal
        # end-of-day deadlines are shown as a date only
        assert "22/01/2026" in plan.actions[1].message
        assert "23:59" not in plan.actions[1].message

    def test_meeting_plan(self):
        plan = decide(_raw(hypothesis="meeting", title="sync", relativeTime="tomorrow at 10"), NOW)
        assert plan.actions[0] == CreateMeeting(title="sync", start="2026-01-22T10:00:00", end="2026-01-22T11:00:00")
        assert plan.actions[1] == SendMessage(message=messages.meeting_created("sync", "2026-01-22T10:00:00"))
        assert plan.is_terminal

    def test_idea_plan(self):
        plan = decide(_raw(hypothesis="idea", title="podcast about bees"), NOW)
        assert plan.actions[0] == SaveIdea(title="podcast about bees")
        assert plan.is_terminal


class TestFollowupPlans:
    def test_missing_time_asks_for_time(self):
        plan = decide(_raw(hypothesis="meeting", title="sync", relativeTime="tomorrow"), NOW)
        assert plan.action_types == ["REQUEST_FOLLOWUP"]
        followup = plan.actions[0]
        assert followup.missing == "TIME"
        assert followup.intent_type == "meeting"
        assert followup.context == "tomorrow"
        assert "שעה" in followup.question
        assert not plan.is_terminal

    def test_missing_date_asks_for_day(self):
        plan = decide(_raw(hypothesis="meeting", title="sync", relativeTime="at 6 pm"), NOW)
        assert plan.actions[0].missing == "DATE"
        assert "יום" in plan.actions[0].question

    def test_missing_both_uses_title_as_context(self):
        plan = decide(_raw(hypothesis="meeting", title="meeting with Dani"), NOW)
        followup = plan.actions[0]
        assert followup.missing == "DATE_TIME_RANGE"
        assert followup.context == "meeting with Dani"
        assert followup.question == messages.question_for("DATE_TIME_RANGE")


class TestFallback:
    def test_unknown_hypothesis_gets_fallback_message(self):
        plan = decide(_raw(hypothesis="shopping", title="eggs"), NOW)
        assert plan.to_dict() == fallback_plan().to_dict()
        assert plan.actions[0].message == messages.MESSAGES["not_understood"]
        assert not plan.is_terminal


class TestActionPayloads:
    def test_request_followup_to_dict_is_camel_case(self):
        action = RequestFollowup(intent_type="task", title="x", missing="DATE", question="?")
        assert action.to_dict() == {
            "type": "REQUEST_FOLLOWUP",
            "intentType": "task",
            "title": "x",
            "missing": "DATE",
            "question": "?",
        }

    def test_task_without_due_omits_key(self):
        assert CreateTask(title="x").to_dict() == {"type": "CREATE_TASK", "title": "x"}
