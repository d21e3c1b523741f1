"""
Main entrypoint: SimLens API server.

Env: TENDERLY_ACCOUNT_SLUG, TENDERLY_PROJECT_SLUG, TENDERLY_ACCESS_KEY, API_HOST, API_PORT, LOG_LEVEL, LOG_FORMAT.

Equivalent: uvicorn backend_simlens.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured logging before other imports that may log
from backend_simlens.simlens_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    from backend_simlens.config import get_settings
    from backend_simlens.config.env import get_log_level

    settings = get_settings()
    if not settings.has_credentials:
        logger.warning(
            "main_config_warning",
            message="Simulation API credentials missing: /simulate, /simulations and remote history will fail",
        )

    from backend_simlens.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port, default_chain_id=settings.default_chain_id)
    uvicorn.run(app, host=api_host, port=api_port, log_level=get_log_level().lower())


if __name__ == "__main__":
    main()
