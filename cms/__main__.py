"""Run the CMS with uvicorn: ``python -m cms``."""

from __future__ import annotations

import uvicorn

from cms.config.logging_config import configure_logging
from cms.config.settings import get_settings


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        "cms.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
