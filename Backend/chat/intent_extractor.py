"""OpenAI Tool Calling extractor: brain-dump text -> RawIntent hypothesis."""

import json
import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path

import dateparser
import jsonschema
from openai import AsyncOpenAI, BadRequestError

from tools.models import RawIntent
from tools.nlp import format_local_iso, parse_iso
from utils.timezone import TIMEZONE, local_now

logger = logging.getLogger(__name__)

BUSINESS_DIR = Path(__file__).resolve().parent.parent / "business"
PROMPT_DIR = Path(__file__).resolve().parent / "prompt"
TOOL_NAME = "extract_raw_intent"

_client: AsyncOpenAI | None = None


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
    return _client


@lru_cache(maxsize=4)
def _load_schema(name: str = "raw_intent_schema.json") -> dict:
    with open(BUSINESS_DIR / name, "r", encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=4)
def _load_prompt(name: str = "intent_extraction.txt") -> str:
    with open(PROMPT_DIR / name, "r", encoding="utf-8") as f:
        return f.read().strip()


def _build_tools(schema: dict) -> list[dict]:
    params = {k: v for k, v in schema.items() if k not in ("$schema", "title")}
    return [
        {
            "type": "function",
            "function": {
                "name": TOOL_NAME,
                "description": "Classify a spoken note as task, meeting or idea and extract its title and time words.",
                "parameters": params,
            },
        }
    ]


async def _call_with_tools(client: AsyncOpenAI, model: str, messages: list, tools: list):
    kwargs = dict(
        model=model,
        messages=messages,
        tools=tools,
        tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
        temperature=0,
    )
    try:
        return await client.chat.completions.create(**kwargs)
    except BadRequestError as e:
        if "temperature" in str(e):
            logger.info("Model %s rejects temperature=0, retrying without it", model)
            kwargs.pop("temperature")
            return await client.chat.completions.create(**kwargs)
        raise


def _tool_arguments(response) -> str:
    tool_calls = response.choices[0].message.tool_calls or []
    if not tool_calls:
        return ""
    return tool_calls[0].function.arguments or ""


def _auto_fix(data: dict) -> None:
    """Patch common model omissions before schema validation."""
    if not isinstance(data, dict):
        return
    data.setdefault("confidence", 0.5)
    signals = data.setdefault("signals", {})
    if isinstance(signals, dict):
        for key in ("hasDate", "hasTime", "hasTimeRange"):
            signals.setdefault(key, False)
    if isinstance(data.get("hypothesis"), str):
        data["hypothesis"] = data["hypothesis"].strip().lower()


def _parse_and_validate(raw_args: str, schema: dict) -> dict:
    parsed = json.loads(raw_args)
    _auto_fix(parsed)
    jsonschema.Draft7Validator(schema).validate(parsed)
    return parsed


def normalise_due(value: str | None, ref: datetime) -> str | None:
    """Keep ISO values; give free-text values one dateparser attempt, else drop them."""
    if not value:
        return None
    if parse_iso(value):
        return value
    dt = dateparser.parse(value, settings={
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": ref,
    })
    if dt is None:
        logger.info("Dropping unparsable due %r", value)
        return None
    return format_local_iso(dt.replace(tzinfo=None))


async def extract_raw_intent(text: str, *, model: str | None = None) -> RawIntent:
    """
    Ask the model for a single hypothesis about ``text``.

    The tool output is validated against ``raw_intent_schema.json``. An invalid
    answer gets one repair pass; a second failure raises ValueError.
    """
    client = get_openai_client()
    model = model or os.getenv("OPENAI_INTENT_MODEL") or os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
    schema = _load_schema()
    tools = _build_tools(schema)

    current_dt = local_now()
    system_prompt = _load_prompt().format(
        current_datetime=current_dt.strftime("%Y-%m-%d %H:%M (%A)"),
        timezone_name=str(TIMEZONE),
    )
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": text},
    ]

    logger.info("Intent extraction: model=%s, text=%r", model, text[:200])
    response = await _call_with_tools(client, model, messages, tools)
    raw_args = _tool_arguments(response)
    logger.info("Intent extraction raw: %s", raw_args[:500])

    try:
        parsed = _parse_and_validate(raw_args, schema)
    except (json.JSONDecodeError, jsonschema.ValidationError) as first_err:
        logger.warning("First pass validation failed: %s", first_err)
        repair_messages = [
            {
                "role": "system",
                "content": (
                    "The previous tool call output was invalid JSON or failed schema validation. "
                    "Fix ONLY the JSON to conform to the schema. Call the tool again with corrected arguments."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Original input:\n{text}\n\n"
                    f"Invalid output:\n```\n{raw_args}\n```\n\n"
                    f"Validation error: {first_err}\n\n"
                    f"Schema:\n```json\n{json.dumps(schema, ensure_ascii=False, indent=2)}\n```"
                ),
            },
        ]
        repair_response = await _call_with_tools(client, model, repair_messages, tools)
        repair_args = _tool_arguments(repair_response)
        try:
            parsed = _parse_and_validate(repair_args, schema)
        except (json.JSONDecodeError, jsonschema.ValidationError) as repair_err:
            logger.error("Repair pass also failed: %s", repair_err)
            raise ValueError(f"Intent extraction failed after repair pass: {repair_err}") from repair_err
        logger.info("Intent extraction validated on repair pass")

    parsed["due"] = normalise_due(parsed.get("due"), current_dt)
    return RawIntent.model_validate(parsed)
