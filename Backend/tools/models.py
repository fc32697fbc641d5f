from dataclasses import dataclass
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

HYPOTHESES = ("task", "meeting", "idea")

MissingField = Literal["DATE", "TIME", "DATE_TIME_RANGE"]
UnclearReason = Literal["MISSING_DATE", "MISSING_TIME", "MISSING_BOTH", "UNKNOWN_TYPE"]
FollowupIntentType = Literal["task", "meeting"]

@dataclass(frozen=True)
class TimeOfDay:
  hour: int
  minute: int = 0

  def to_dict(self) -> dict:
    return {"hour": self.hour, "minute": self.minute}

  @classmethod
  def from_dict(cls, data: dict | None) -> "TimeOfDay | None":
    if not isinstance(data, dict) or data.get("hour") is None:
      return None
    return cls(hour=int(data["hour"]), minute=int(data.get("minute") or 0))

@dataclass(frozen=True)
class TimeResult:
  # 时间解析结果，hour 为 None 表示没有找到
  hour: int | None = None
  minute: int = 0
  confidence: float = 0.0

  @property
  def found(self) -> bool:
    return self.hour is not None

  def to_time_of_day(self) -> TimeOfDay | None:
    if self.hour is None:
      return None
    return TimeOfDay(hour=self.hour, minute=self.minute)

class IntentSignals(BaseModel):
  model_config = ConfigDict(populate_by_name=True, frozen=True)

  has_date: bool = Field(False, alias="hasDate")
  has_time: bool = Field(False, alias="hasTime")
  has_time_range: bool = Field(False, alias="hasTimeRange")

class RawIntent(BaseModel):
  # 上游 LLM 给出的假设，一次会话轮次只产生一个
  model_config = ConfigDict(populate_by_name=True, frozen=True)

  hypothesis: str = ""
  title: str = ""
  start: str | None = None
  end: str | None = None
  due: str | None = None
  relative_time: str | None = Field(None, alias="relativeTime")
  confidence: float = 0.0
  signals: IntentSignals = Field(default_factory=IntentSignals)

  @field_validator("hypothesis", mode="before")
  @classmethod
  def _normalize_hypothesis(cls, value) -> str:
    return str(value or "").strip().lower()

  @field_validator("title", mode="before")
  @classmethod
  def _normalize_title(cls, value) -> str:
    return str(value or "").strip()

  @field_validator("confidence", mode="before")
  @classmethod
  def _clamp_confidence(cls, value) -> float:
    try:
      parsed = float(value)
    except (TypeError, ValueError):
      return 0.0
    return min(max(parsed, 0.0), 1.0)

@dataclass(frozen=True)
class TaskIntent:
  title: str
  confidence: float
  due: str | None = None

@dataclass(frozen=True)
class MeetingIntent:
  title: str
  confidence: float
  start: str
  end: str

@dataclass(frozen=True)
class IdeaIntent:
  title: str
  confidence: float

@dataclass(frozen=True)
class UnclearIntent:
  title: str
  confidence: float
  reason: UnclearReason

ResolvedIntent = Union[TaskIntent, MeetingIntent, IdeaIntent, UnclearIntent]

@dataclass
class PendingFollowup:
  # 等待用户补充信息的状态，每个用户最多一条
  intent_type: FollowupIntentType
  title: str
  missing: MissingField
  created_at: float
  date: str | None = None  # YYYY-MM-DD
  start_time: TimeOfDay | None = None
  end_time: TimeOfDay | None = None
  raw_time_expression: str | None = None
  updated_at: float | None = None

  def to_dict(self) -> dict:
    return {
      "intentType": self.intent_type,
      "title": self.title,
      "missing": self.missing,
      "date": self.date,
      "startTime": self.start_time.to_dict() if self.start_time else None,
      "endTime": self.end_time.to_dict() if self.end_time else None,
      "rawTimeExpression": self.raw_time_expression,
      "createdAt": self.created_at,
      "updatedAt": self.updated_at,
    }

  @classmethod
  def from_dict(cls, data: dict) -> "PendingFollowup":
    return cls(
      intent_type=data["intentType"],
      title=data.get("title") or "",
      missing=data["missing"],
      created_at=float(data["createdAt"]),
      date=data.get("date"),
      start_time=TimeOfDay.from_dict(data.get("startTime")),
      end_time=TimeOfDay.from_dict(data.get("endTime")),
      raw_time_expression=data.get("rawTimeExpression"),
      updated_at=data.get("updatedAt"),
    )

class BrainDumpResponse(BaseModel):
  # /brain-dump
  ok: bool
  actions: list[dict] = Field(default_factory=list)
  results: list[dict] = Field(default_factory=list)
  followup_pending: bool = Field(False, alias="followupPending")

  model_config = ConfigDict(populate_by_name=True)
