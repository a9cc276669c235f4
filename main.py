"""
main.py
========
Doorstep service entry point.

Loads ``.env``, configures logging for every ``doorstep.*`` logger and
exposes the FastAPI ``app``.

Run with:
    uvicorn main:app --reload
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# The OpenAI SDK logs through its own logger and its httpx/httpcore
# transport; child loggers inherit these levels.
TRANSPORT_LOGGERS: tuple[str, ...] = ("openai", "httpx", "httpcore")

for _name in TRANSPORT_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

from doorstep.api.transcripts import app  # noqa: F401, E402

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
