"""Entry point for the roster API.

Starts the FastAPI application under Uvicorn.  Host and port are read
from ``API_HOST`` and ``API_PORT`` (defaults ``0.0.0.0`` and ``8000``);
everything else comes from the environment variables documented in
``roster_api/app/core/config.py``.

Usage:
    python run.py
"""
import asyncio
import os

from uvicorn import Config, Server

from roster_api.app.main import app


async def main() -> None:
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level="info")
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
