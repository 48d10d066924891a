"""credstore entrypoint.

Run with:
  python -m credstore
"""

import logging
import os

import uvicorn


def main() -> None:
    host = os.getenv("CREDSTORE_HOST", "0.0.0.0")
    port = int(os.getenv("CREDSTORE_PORT", "8000"))
    reload = os.getenv("CREDSTORE_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    level = os.getenv("CREDSTORE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("credstore.app:create_app", factory=True, host=host, port=port, reload=reload, log_level=level.lower())


if __name__ == "__main__":
    main()
