"""
FastAPI Main Application
-----------------------
This is the main application file that defines the FastAPI app and endpoints.
It exposes the reconciliation engine as a small RESTful API.
"""

import os
import asyncio
import logging
import traceback

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from csv_reconcile import __version__
from csv_reconcile.errors import ConfigurationError
from csv_reconcile.models.data_models import (
    ReconciliationConfig,
    PairSummary,
    GlobalSummary,
    ReconcileResponse,
)
from csv_reconcile.core.output import OutputGenerator
from csv_reconcile.core.reconciliation import reconcile_directories_async
from csv_reconcile.utils.console import ConsoleSink
from csv_reconcile.utils.csv_io import PandasCsvWriter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="CSV Reconcile API",
    description="API for reconciling CSV files between two directories",
    version=__version__
)

# Add CORS middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint that returns a simple health check message."""
    return {"message": "CSV Reconcile API is running!"}


@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": __version__}


@app.post("/api/reconcile", response_model=ReconcileResponse, response_model_by_alias=True)
async def reconcile(config: ReconciliationConfig):
    """
    Reconcile the CSV files of two server-side directories.

    The request body is a reconciliation config (camelCase keys accepted).
    Output files are written to the config's output directory and the
    summaries are returned.

    Args:
        config: Directories, matching rule and run options

    Returns:
        ReconcileResponse: Global summary and one summary per pair

    Raises:
        HTTPException: 400 for an invalid configuration, 500 for unexpected errors
    """
    try:
        logger.info(f"Reconcile request: {config.left_dir} vs {config.right_dir}")
        writer = PandasCsvWriter()
        result = await reconcile_directories_async(config, writer=writer, console=ConsoleSink(quiet=True))

        # Summaries are built before output generation clears the temp paths
        pairs = [PairSummary.from_result(r) for r in result.pair_results]
        # File copies and JSON writes run off the event loop
        await asyncio.to_thread(OutputGenerator(writer).generate_all, result, config.output_dir, config.delimiter)

        message = f"Reconciled {len(result.pair_results)} file pairs"
        if result.failed_count:
            message += f" ({result.failed_count} with errors)"

        return ReconcileResponse(
            message=message,
            output_dir=os.path.abspath(config.output_dir),
            summary=GlobalSummary.from_result(result),
            pairs=pairs,
        )
    except ConfigurationError as e:
        logger.warning(f"Rejected reconcile request: {e}")
        raise HTTPException(status_code=400, detail={"errors": e.errors or [str(e)]})
    except Exception as e:
        logger.error(f"Error during reconciliation: {str(e)}")
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail=f"Reconciliation failed: {str(e)}")
