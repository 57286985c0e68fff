import logging
import os

import uvicorn
from dotenv import load_dotenv


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    # Logging goes up before gateway.main builds the app and its registry
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    from gateway.main import app  # local import

    settings = app.state.settings
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
