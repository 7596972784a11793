"""Entry point: ``python -m ertc_webhook.main`` or the ``ertc-webhook`` script."""

from __future__ import annotations

import logging

import uvicorn

from ertc_webhook.config import settings


def run() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "ertc_webhook.api.server:app",
        host=settings.fastapi_host,
        port=settings.fastapi_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    run()
