"""CLI entry point: python -m linepush"""

from __future__ import annotations

import uvicorn

from linepush.config import LinePushConfig
from linepush.observability.logging import setup_logging


def main() -> None:
    config = LinePushConfig.from_yaml()
    setup_logging(config.log_level)

    uvicorn.run(
        "linepush.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
