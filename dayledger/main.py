"""DayLedger MCP Server - Entry point.

Runs the ledger tools over MCP's streamable HTTP transport, mounted in a
Starlette app alongside a health route.
"""

import contextlib
import logging
import os

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from .shell.mcp_server import close_session, mcp


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "healthy", "service": "dayledger-mcp"})


def create_app() -> Starlette:
    """Create the Starlette application with MCP at root.

    The MCP app's lifespan initializes its session manager; on shutdown the
    ledger session is signed out so the sensor and rollover threads stop.
    """
    mcp_app = mcp.streamable_http_app()

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        async with mcp_app.router.lifespan_context(app):
            try:
                yield
            finally:
                close_session()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        # MCP app handles /mcp/ internally
        Mount("/", app=mcp_app),
    ]

    return Starlette(routes=routes, lifespan=lifespan)


app = create_app()


def main() -> None:
    """Run the server."""
    port = int(os.environ.get("PORT", 8080))
    host = os.environ.get("HOST", "127.0.0.1")

    logger.info("Starting DayLedger MCP server on %s:%d", host, port)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
