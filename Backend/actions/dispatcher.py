"""Execute an ActionPlan against the outbound collaborators."""

import logging
import time
from typing import Protocol

from followup.store import FollowupStore
from tools.models import PendingFollowup

from .types import (
    Action,
    ActionPlan,
    CreateMeeting,
    CreateTask,
    RequestFollowup,
    SaveIdea,
    SendMessage,
)

logger = logging.getLogger(__name__)


class TaskService(Protocol):
    async def create_task(self, user_id: str, title: str, due: str | None) -> dict: ...


class CalendarService(Protocol):
    async def create_meeting(self, user_id: str, title: str, start: str, end: str) -> dict: ...


class IdeaSink(Protocol):
    async def save_idea(self, user_id: str, title: str) -> dict: ...


class Messenger(Protocol):
    async def send_message(self, user_id: str, message: str) -> dict: ...


class LoggingCollaborator:
    """Stands in for every outbound service: records the call in the log only."""

    async def create_task(self, user_id: str, title: str, due: str | None) -> dict:
        logger.info("[%s] create_task title=%r due=%s", user_id, title, due)
        return {"title": title, "due": due}

    async def create_meeting(self, user_id: str, title: str, start: str, end: str) -> dict:
        logger.info("[%s] create_meeting title=%r %s -> %s", user_id, title, start, end)
        return {"title": title, "start": start, "end": end}

    async def save_idea(self, user_id: str, title: str) -> dict:
        logger.info("[%s] save_idea title=%r", user_id, title)
        return {"title": title}

    async def send_message(self, user_id: str, message: str) -> dict:
        logger.info("[%s] send_message %r", user_id, message[:200])
        return {"message": message}


class ActionDispatcher:
    def __init__(
        self,
        store: FollowupStore,
        *,
        tasks: TaskService | None = None,
        calendar: CalendarService | None = None,
        ideas: IdeaSink | None = None,
        messenger: Messenger | None = None,
    ):
        default = LoggingCollaborator()
        self.store = store
        self.tasks = tasks or default
        self.calendar = calendar or default
        self.ideas = ideas or default
        self.messenger = messenger or default

    async def execute_plan(self, plan: ActionPlan, user_id: str) -> list[dict]:
        results = []
        for action in plan.actions:
            results.append(await self.execute_action(action, user_id))
        return results

    async def execute_action(self, action: Action, user_id: str) -> dict:
        try:
            result = await self._run(action, user_id)
        except Exception as e:
            logger.exception("[%s] Action %s failed", user_id, action.type)
            return {"action_type": action.type, "status": "failed", "result": {"error": str(e)[:300]}}
        return {"action_type": action.type, "status": "success", "result": result}

    async def _run(self, action: Action, user_id: str) -> dict:
        match action:
            case CreateTask(title=title, due=due):
                return await self.tasks.create_task(user_id, title, due)
            case CreateMeeting(title=title, start=start, end=end):
                return await self.calendar.create_meeting(user_id, title, start, end)
            case SaveIdea(title=title):
                return await self.ideas.save_idea(user_id, title)
            case SendMessage(message=message):
                return await self.messenger.send_message(user_id, message)
            case RequestFollowup():
                return await self._request_followup(action, user_id)
        raise ValueError(f"Unsupported action: {action!r}")

    async def _request_followup(self, action: RequestFollowup, user_id: str) -> dict:
        # replaces any follow-up already waiting for this user
        pending = PendingFollowup(
            intent_type=action.intent_type,
            title=action.title,
            missing=action.missing,
            raw_time_expression=action.context,
            created_at=time.time(),
        )
        self.store.set(user_id, pending)
        logger.info("[%s] Follow-up opened: missing=%s title=%r", user_id, action.missing, action.title)
        await self.messenger.send_message(user_id, action.question)
        return {"missing": action.missing, "question": action.question}
