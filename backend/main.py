"""Process entrypoint.

``backend.main:app`` is the ASGI application for ``uvicorn``; ``run()`` is the
console script. Uvicorn handles SIGTERM/SIGINT: it stops accepting new
connections, lets in-flight requests finish for up to
``APP_SHUTDOWN_GRACE_SECONDS``, then runs the app's lifespan shutdown, which
closes the database pool and the cache connection.
"""

import uvicorn

from backend.core.app_factory import create_app
from backend.core.config import load_settings

settings = load_settings()
app = create_app(settings)


def run() -> None:
    uvicorn.run(
        app,
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
        access_log=False,
        timeout_graceful_shutdown=settings.app.shutdown_grace_seconds or None,
    )


if __name__ == "__main__":
    run()
