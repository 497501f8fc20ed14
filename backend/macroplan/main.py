"""MacroPlan Server - Entry point.

Runs the REST API and the MCP server with HTTP transport.
Uses Starlette with the MCP HTTP app mounted at root.
"""

import logging
import os

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, Mount

from .shell.mcp_server import mcp, current_user_id, get_firestore_client
from .shell.http_api import api_routes
from .shell.auth import extract_bearer_key, issue_api_key, resolve_user


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "https://macroplan.app,http://localhost:3000"


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "healthy", "service": "macroplan"})


async def register_user(request: Request) -> JSONResponse:
    """Register a new user and return their API key."""
    try:
        body = await request.json()
        email = body.get("email")

        if not email or "@" not in email:
            return JSONResponse({"error": "Valid email is required"}, status_code=400)

        issued = issue_api_key(
            get_firestore_client(), email, body.get("first_name"), body.get("last_name")
        )
        if issued is None:
            return JSONResponse({"error": "Registration failed."}, status_code=500)
        api_key, _ = issued

        base_url = os.environ.get("BASE_URL", "http://localhost:8080")

        return JSONResponse({
            "api_key": api_key,
            "message": "Registration successful! Save your API key - it won't be shown again.",
            "mcp_url": f"{base_url}/mcp",
        })

    except Exception as e:
        logger.error("Registration failed: %s", str(e))
        return JSONResponse({"error": "Registration failed."}, status_code=500)


async def validate_key(request: Request) -> JSONResponse:
    """Validate an API key."""
    try:
        body = await request.json()
        api_key = body.get("api_key")

        if not api_key:
            return JSONResponse({"valid": False, "error": "API key required"})

        user_id = resolve_user(get_firestore_client(), api_key)
        return JSONResponse({"valid": user_id is not None})

    except Exception as e:
        logger.error("Validation failed: %s", str(e))
        return JSONResponse({"valid": False, "error": "Validation failed"})


# ==================== Auth Middleware ====================


class AuthMiddleware(BaseHTTPMiddleware):
    """Authenticate MCP and REST requests using API key in Authorization header.

    /api requests without a valid key are rejected; /mcp requests pass through
    and the tools report the missing user.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        is_api = path.startswith("/api")
        if not (is_api or path.startswith("/mcp")) or request.method == "OPTIONS":
            return await call_next(request)

        api_key = extract_bearer_key(request.headers.get("Authorization"))
        user_id = resolve_user(get_firestore_client(), api_key)

        if user_id is None:
            if is_api:
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            return await call_next(request)

        # Set user context for this request
        current_user_id.set(user_id)
        logger.debug("Authenticated user: %s", user_id[:8])
        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app() -> Starlette:
    """Create the Starlette application with MCP at root.

    The MCP streamable_http_app() handles /mcp/ internally when mounted at root.
    We use its lifespan context to ensure proper initialization.
    """
    mcp_app = mcp.streamable_http_app()

    # Custom routes first, then MCP app at root
    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/register", register_user, methods=["POST"]),
        Route("/auth/validate", validate_key, methods=["POST"]),
        *api_routes,
        # Mount MCP app at root - it handles /mcp/ path internally
        Mount("/", app=mcp_app),
    ]

    origins = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=[o.strip() for o in origins if o.strip()],
                allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(AuthMiddleware),
        ],
        lifespan=mcp_app.router.lifespan_context,
    )

    return app


# Create app at module level for the container runtime
app = create_app()


def main() -> None:
    """Run the server."""
    port = int(os.environ.get("PORT", 8080))
    host = os.environ.get("HOST", "0.0.0.0")

    logger.info("Starting MacroPlan server on %s:%d", host, port)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
