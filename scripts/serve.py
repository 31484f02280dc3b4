from __future__ import annotations

import logging
import sys

import uvicorn

from mongodrop.apps.api.main import create_app
from mongodrop.core.config import get_settings
from mongodrop.core.errors import ConfigError
from mongodrop.core.logging import configure_logging
from mongodrop.services.coordinator import initialize


logger = logging.getLogger(__name__)


def main() -> None:
    # Validate configuration before binding the port so misconfiguration exits fast.
    configure_logging()
    settings = get_settings()
    try:
        coordinator = initialize(settings)
    except ConfigError as exc:
        logger.error("startup_config_invalid error=%s", exc)
        sys.exit(1)
    app = create_app(coordinator=coordinator)
    logger.info("backup_service_listening port=%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
