"""
Production entrypoint for the property onboarding app.

Binds to 0.0.0.0:$PORT.
"""

import logging
import os

import uvicorn

from utils.config import configure_logging

if __name__ == "__main__":
    configure_logging()
    port = int(os.getenv("PORT", "8000"))
    logging.getLogger(__name__).info("Starting property onboarding on port %d", port)

    # Import app here to ensure clean module loading
    from web.app import app

    uvicorn.run(app, host="0.0.0.0", port=port)
