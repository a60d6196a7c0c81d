import uvicorn

from blog_api.config import load_settings
from blog_api.main import create_app


def main() -> None:
    settings = load_settings()
    # uvicorn stops accepting connections on SIGINT/SIGTERM, waits for
    # in-flight requests, then runs the lifespan shutdown (pool close).
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        timeout_graceful_shutdown=settings.shutdown_grace_seconds,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
