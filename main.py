"""Main entry point for the FastAPI application."""

import uvicorn
# Import all models to ensure they're loaded before app creation
import components.plan.models
import components.execution.models
import components.finance.models
import components.inventory.models

from components.core.logging_config import setup_logging
from restapi.router import create_app

setup_logging()
app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", reload=True)
