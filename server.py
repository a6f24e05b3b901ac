import uvicorn
from loguru import logger

from medisync.api.app import create_app
from medisync.config import AppConfig
from medisync.container import build_services, set_services
from medisync.logging_setup import configure_logging


def main() -> None:
    config = AppConfig()
    configure_logging(config.log_level)
    logger.info("Starting medisync intake API")

    services = build_services(config)
    set_services(services)
    uvicorn.run(create_app(services), host="0.0.0.0", port=8000, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
