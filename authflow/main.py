"""ASGI entrypoint: ``uvicorn authflow.main:app``."""

import os

import uvicorn

from .core.app_factory import create_application

app = create_application()


def run() -> None:
    uvicorn.run(
        "authflow.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    run()

__all__ = ("app", "run")
