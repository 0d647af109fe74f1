"""Serve the API with uvicorn: ``python -m grc_records.run``."""

import os

import uvicorn


def main() -> None:
    """Serve the API with uvicorn; host and port come from HOST and PORT."""
    uvicorn.run(
        "grc_records.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
