import uvicorn

from content_api.config import settings


def main():
    uvicorn.run(
        "content_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
