"""`python -m hf_relay` 실행 진입점."""
from __future__ import annotations

import logging

import uvicorn

from hf_relay.app import create_app
from hf_relay.deps.settings import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
