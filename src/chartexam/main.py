"""Entry point: serve the grading API with uvicorn.

Component wiring order:
1. AppSettings (configuration)
2. Logging setup
3. Collaborators (logging result sink; no auth resolver unless embedded)
4. FastAPI app
"""

import uvicorn

from chartexam.api.app import create_app
from chartexam.api.collaborators import LoggingResultSink
from chartexam.config import AppSettings
from chartexam.logging import get_logger, setup_logging


def main() -> None:
    settings = AppSettings()
    setup_logging(settings.log_level)
    logger = get_logger("chartexam.main")

    app = create_app(settings, result_sink=LoggingResultSink())

    logger.info("api_starting", host=settings.api.host, port=settings.api.port)
    uvicorn.run(app, host=settings.api.host, port=settings.api.port, log_config=None)


if __name__ == "__main__":
    main()
