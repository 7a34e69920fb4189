"""
HTTP discovery endpoint.

Routes:
    GET /checkpoints/{session_id}  -> 200 signed index JSON
                                      404 {"error": "NOT_FOUND", ...}
                                      400 {"error": "INVALID_SESSION_ID", ...}
                                      500 {"error": "STORAGE_ERROR", ...}
    GET /health                    -> {"status": "ok"}

CORS is open to any origin.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..core.canonical import canonical_json_bytes
from ..core.errors import NotFoundError, TransientStorageError
from .service import DiscoveryService

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def create_app(service: DiscoveryService) -> FastAPI:
    app = FastAPI(title="sessionvault discovery")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/checkpoints/{session_id}")
    def get_checkpoints(session_id: str) -> Response:
        try:
            index = service.get_checkpoints(session_id)
        except NotFoundError as exc:
            return _error(404, "NOT_FOUND", str(exc))
        except TransientStorageError as exc:
            logger.error(f"Storage error serving index for {session_id}: {exc}")
            return _error(500, "STORAGE_ERROR", str(exc))
        except ValueError as exc:
            return _error(400, "INVALID_SESSION_ID", str(exc))
        return Response(content=canonical_json_bytes(index.to_dict()), media_type="application/json")

    return app
