import uvicorn

from chat_gateway.core.config import settings


def main() -> None:
    uvicorn.run(
        "chat_gateway.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENVIRONMENT == "local",
        log_config=None,  # structlog owns logging
    )


if __name__ == "__main__":
    main()
