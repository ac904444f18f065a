"""fitrack entrypoint.

Run with:
  python -m fitrack
"""

import logging
import os

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.getenv("FITRACK_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("FITRACK_HOST", "0.0.0.0")
    port = int(os.getenv("FITRACK_PORT", "8000"))
    reload = os.getenv("FITRACK_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("fitrack.app:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
