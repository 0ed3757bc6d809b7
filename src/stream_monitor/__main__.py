"""Run the monitor API with uvicorn."""

import uvicorn

from stream_monitor.api import create_app
from stream_monitor.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
