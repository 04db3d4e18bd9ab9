"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — opens the Bank (database + services) at startup and
     closes it at shutdown
  2. CORS middleware — allows frontend origins to make cross-origin requests
  3. Exception handlers — maps ledger errors to HTTP responses
  4. Router registration — mounts the account and transfer endpoints

Running locally:
    uvicorn bank_ledger.main:app --reload

The --reload flag watches for file changes and restarts automatically,
which is ideal for development but should not be used in production.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bank_ledger.bank import Bank
from bank_ledger.config import Settings, settings as default_settings
from bank_ledger.exceptions import register_exception_handlers
from bank_ledger.logging_config import configure_logging
from bank_ledger.routers import accounts, transfers


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build an application around the given (or the environment's) settings."""
    settings = settings or default_settings
    configure_logging(level=settings.LOG_LEVEL, log_json=settings.LOG_JSON)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
          Builds the Bank and creates any missing tables. Everything that
          holds connections is owned by this Bank, not by module globals.

        Shutdown:
          Disposes of the database engine, closing all connections cleanly.
        """
        # --- Startup ---
        bank = Bank.from_settings(settings)
        await bank.start()
        app.state.bank = bank
        yield
        # --- Shutdown ---
        await bank.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Account balances and atomic transfers with an append-only audit ledger",
        lifespan=lifespan,
    )

    # CORS: Allow specified frontend origins to make requests.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
    app.include_router(transfers.router, prefix="/transfers", tags=["Transfers"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint for deployment probes (Kubernetes, Docker, etc.).

        Returns a simple JSON response indicating the service is running.
        """
        return {"status": "ok", "version": settings.APP_VERSION}

    return app


app = create_app()
