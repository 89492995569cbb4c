"""
Token Forge: Flask Web Application

Runs the registry and compile API on a development server.  In production,
point a WSGI server at ``token_forge.api:create_app()`` instead.
"""

import logging
import os

from token_forge.api import create_app
from token_forge.config import load_settings, setup_logging

# ---------------------------------------------------------------------------
# App Setup
# ---------------------------------------------------------------------------

setup_logging(logging.INFO)
logger = logging.getLogger(__name__)

settings = load_settings()
app = create_app(settings)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    logger.info("Starting Token Forge API on port %d (chain %s)", port, settings.chain_id)
    app.run(host="0.0.0.0", port=port, debug=False)
