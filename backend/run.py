"""Serve the API with uvicorn: ``python -m backend.run``."""

import uvicorn

from pva.config import get_settings


def main() -> None:
    settings = get_settings()
    dev = settings.pva_env == "development"
    uvicorn.run("backend.main:app", host="0.0.0.0", port=settings.port, reload=dev, log_level="debug" if dev else "info")


if __name__ == "__main__":
    main()
