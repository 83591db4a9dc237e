from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the repo root before settings are first read.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

from chat_proxy.app import create_app  # noqa: E402
from chat_proxy.core.settings import get_settings  # noqa: E402

app = create_app()


def dev():  # uvicorn entry helper
    import uvicorn

    settings = get_settings()
    # Run by passing the app object directly to avoid import path issues
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        reload=False,
        log_level=(settings.LOG_LEVEL or "info").lower(),
    )


if __name__ == "__main__":
    dev()
