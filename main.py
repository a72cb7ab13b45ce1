from ghl_gateway.logging_config import setup_logging
from ghl_gateway.routes import create_app


# Configure logging once for the whole process.
setup_logging()

# FastAPI application instance for uvicorn.
app = create_app()


def run() -> None:
    import os

    import uvicorn

    # Use our own logging configuration configured in ghl_gateway.logging_config.
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        log_config=None,
    )


if __name__ == "__main__":
    run()
