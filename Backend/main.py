import logging
import os
from pathlib import Path

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from actions.dispatcher import ActionDispatcher
from api.brain_dump import router as brain_dump_router
from chat.intent_extractor import extract_raw_intent
from decision.turn_handler import TurnHandler
from followup.resolver import FollowupResolver
from followup.store import InMemoryFollowupStore, UserLocks
from utils.timezone import TIMEZONE

logging.basicConfig(
  level=os.getenv("LOG_LEVEL", "INFO").upper(),
  format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_turn_handler() -> TurnHandler:
  # 组装一次会话轮次所需的全部组件
  store = InMemoryFollowupStore()
  return TurnHandler(
    store,
    ActionDispatcher(store),
    extract_raw_intent,
    resolver=FollowupResolver(store),
    locks=UserLocks(),
  )


def _cors_origins() -> list[str]:
  raw = os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
  return [origin.strip() for origin in raw.split(",") if origin.strip()]


app = FastAPI(title="Brain Dump Assistant")
app.include_router(brain_dump_router)
app.state.turn_handler = build_turn_handler()

app.add_middleware(
  CORSMiddleware,
  allow_origins=_cors_origins(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)


@app.get("/health")
async def health():
  return {"ok": True, "timezone": str(TIMEZONE)}


if __name__ == "__main__":
  def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
      return default
    try:
      return int(raw)
    except ValueError:
      return default

  host = os.getenv("BACKEND_HOST", "127.0.0.1")
  port = _int_env("BACKEND_PORT", 8888)
  reload_enabled = os.getenv("BACKEND_RELOAD", "true").lower() in ("1", "true", "yes", "on")

  logger.info("Starting backend on %s:%s (reload=%s)", host, port, reload_enabled)
  uvicorn.run("main:app", host=host, port=port, reload=reload_enabled)
