"""
CSV Reconcile API Entry Point
-----------------------------
Runs the HTTP API with uvicorn. Logging is configured by csv_reconcile.main;
`csv-reconcile serve` starts the same application.
"""

import os
import logging

from dotenv import load_dotenv

load_dotenv()

from csv_reconcile.main import app

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    reload = os.environ.get("RECONCILE_RELOAD", "").lower() in ("1", "true", "yes")

    logger.info(f"Starting CSV Reconcile API on port {port}")
    uvicorn.run("app:app", host="0.0.0.0", port=port, reload=reload)
