"""Run the service with uvicorn: ``python -m transaction_service``"""

import uvicorn

from transaction_service.config import settings


def main() -> None:
    uvicorn.run(
        "transaction_service.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,  # keep the JSON logging set up by the app
    )


if __name__ == "__main__":
    main()
