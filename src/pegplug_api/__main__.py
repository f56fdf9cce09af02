import uvicorn

from pegplug_api.core.settings import settings


def main() -> None:
    """Serve the API with the factory so settings are read at startup."""

    uvicorn.run(
        "pegplug_api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        log_config=None,
    )


if __name__ == "__main__":
    main()
