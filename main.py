from assistant.logging_config import setup_logging
from assistant.routes import create_app


# Configure logging once for the whole process.
setup_logging()

# FastAPI application instance for uvicorn.
app = create_app()


def run() -> None:
    import uvicorn

    # Use our own logging configuration from assistant.logging_config.
    uvicorn.run("main:app", host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":
    run()
