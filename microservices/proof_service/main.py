"""
Proof Service Main Application

FastAPI application for postcard seeds, proofs and the Lob webhook.
Port: 8250
"""

import logging
import os
import sys
import tempfile
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import get_settings, setup_logging

from . import __version__
from .factory import ProofServiceFactory
from .models import (
    HealthResponse,
    Proof,
    ProofDetailsResponse,
    ProofReviewRequest,
    ProofStatus,
    ProofStatusRequest,
    ProviderKeyRequest,
    RunSeedResponse,
    Seed,
    SeedCreateRequest,
    SeedUpdateRequest,
    TickReport,
    WebhookResponse,
)
from .protocols import (
    MailProviderError,
    OwnerNotFoundError,
    ProofNotFoundError,
    ProviderCredentialsMissingError,
    ScanIngestionError,
    SeedNotFoundError,
    SeedValidationError,
    StorageError,
)

settings = get_settings()

# Configure logging
setup_logging(settings.logging)
logger = logging.getLogger(__name__)

# Service configuration
SERVICE_NAME = settings.service_name
SERVICE_PORT = settings.service_port
SERVICE_VERSION = __version__

ARTWORK_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "pdf"})
UPLOAD_CHUNK_SIZE = 1024 * 1024

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[ProofServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    factory = ProofServiceFactory(settings)
    await factory.initialize()

    yield

    # Cleanup
    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()


# Create FastAPI application
app = FastAPI(
    title="Proof Service",
    description="Postcard campaign fan-out and physical proof tracking service",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(SeedNotFoundError)
@app.exception_handler(ProofNotFoundError)
@app.exception_handler(OwnerNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(ProviderCredentialsMissingError)
async def credentials_missing_handler(request: Request, exc: ProviderCredentialsMissingError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(SeedValidationError)
async def validation_error_handler(request: Request, exc: SeedValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(MailProviderError)
@app.exception_handler(StorageError)
@app.exception_handler(ScanIngestionError)
async def upstream_error_handler(request: Request, exc: Exception):
    logger.error(f"Upstream failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "type": type(exc).__name__},
    )


# ====================
# Dependencies
# ====================


def get_factory() -> ProofServiceFactory:
    """Get initialized factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory


def get_service(factory: ProofServiceFactory = Depends(get_factory)):
    return factory.service


def get_lifecycle(factory: ProofServiceFactory = Depends(get_factory)):
    return factory.lifecycle


def get_runner(factory: ProofServiceFactory = Depends(get_factory)):
    return factory.runner


def get_auth_context(request: Request) -> dict:
    """Extract auth context from request headers"""
    return {
        "user_id": request.headers.get("X-User-ID", "system"),
        "role": request.headers.get("X-User-Role", "user"),
    }


async def save_upload(
    upload: UploadFile,
    directory: str,
    allowed_extensions: frozenset,
    max_bytes: int,
) -> str:
    """Stream an upload into directory, enforcing extension and size limits"""
    file_name = os.path.basename(upload.filename or "")
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if extension not in allowed_extensions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type '{extension}', expected one of {sorted(allowed_extensions)}",
        )

    path = os.path.join(directory, file_name)
    written = 0
    with open(path, "wb") as out:
        while True:
            chunk = await upload.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File exceeds {max_bytes // (1024 * 1024)} MB limit",
                )
            out.write(chunk)

    if written == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
    return path


# ====================
# Health Endpoints
# ====================


@app.get("/api/v1/proofs/health")
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            dependencies["postgres"] = "healthy" if db_healthy else "unhealthy"
        except Exception:
            dependencies["postgres"] = "unhealthy"

        if factory.nats_client:
            dependencies["nats"] = "healthy" if factory.nats_client.is_connected else "unhealthy"
        else:
            dependencies["nats"] = "not_configured"

        dependencies["storage"] = "configured" if factory.storage_client else "not_configured"

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/live", tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return {"alive": True, "uptime_seconds": time.time() - startup_time}


# ====================
# Webhook Endpoints
# ====================


@app.post("/api/v1/webhooks/lob", response_model=WebhookResponse, tags=["Webhooks"])
async def lob_webhook(request: Request, lifecycle=Depends(get_lifecycle)):
    """
    Lob delivery event webhook

    204 when the event matched nothing, 200 when a proof was updated. A
    persistence failure still answers 200 so the provider does not retry.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Lob webhook with unreadable body")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    try:
        proof = await lifecycle.handle_provider_event(payload)
    except Exception as e:
        logger.error(f"Failed to apply Lob event: {e}", exc_info=True)
        return WebhookResponse(error="persistence_failed")

    if proof is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return WebhookResponse(proof_id=proof.proof_id, status=proof.status)


# ====================
# Seed Endpoints
# ====================


@app.post("/api/v1/seeds", response_model=Seed, status_code=status.HTTP_201_CREATED, tags=["Seeds"])
async def create_seed(
    request: SeedCreateRequest,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Create a seed; recurring seeds are picked up by the next scheduler tick"""
    return await service.create_seed(request, auth["user_id"])


@app.get("/api/v1/seeds", response_model=List[Seed], tags=["Seeds"])
async def list_seeds(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    return await service.list_seeds(auth["user_id"], limit=limit, offset=offset)


@app.get("/api/v1/seeds/by-code/{public_id}", response_model=Seed, tags=["Seeds"])
async def get_seed_by_code(
    public_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Seed behind the code printed on a mailpiece"""
    return await service.get_seed_by_code(public_id, auth["user_id"])


@app.get("/api/v1/seeds/{seed_id}", response_model=Seed, tags=["Seeds"])
async def get_seed(
    seed_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    return await service.get_seed(seed_id, auth["user_id"])


@app.patch("/api/v1/seeds/{seed_id}", response_model=Seed, tags=["Seeds"])
async def update_seed(
    seed_id: str,
    request: SeedUpdateRequest,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    return await service.update_seed(seed_id, auth["user_id"], request)


@app.delete("/api/v1/seeds/{seed_id}", tags=["Seeds"])
async def delete_seed(
    seed_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Delete a seed; its proofs are kept and lose the seed link"""
    orphaned = await service.delete_seed(seed_id, auth["user_id"])
    return {"deleted": True, "seed_id": seed_id, "orphaned_proofs": orphaned}


@app.post("/api/v1/seeds/{seed_id}/run", response_model=RunSeedResponse, tags=["Seeds"])
async def run_seed(
    seed_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Run a seed now; per-recipient failures are reported, not raised"""
    result = await service.run_seed(seed_id, auth["user_id"])
    return RunSeedResponse.from_result(result)


@app.post("/api/v1/seeds/{seed_id}/pause", response_model=Seed, tags=["Seeds"])
async def pause_seed(
    seed_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    return await service.pause_seed(seed_id, auth["user_id"])


@app.post("/api/v1/seeds/{seed_id}/resume", response_model=Seed, tags=["Seeds"])
async def resume_seed(
    seed_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    return await service.resume_seed(seed_id, auth["user_id"])


@app.post("/api/v1/artwork", status_code=status.HTTP_201_CREATED, tags=["Seeds"])
async def upload_artwork(
    file: UploadFile = File(...),
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Store front/back artwork; the returned URL is usable as a seed side"""
    with tempfile.TemporaryDirectory(prefix="artwork-") as work_dir:
        path = await save_upload(file, work_dir, ARTWORK_EXTENSIONS, settings.resize.upload_max_bytes)
        url = await service.upload_artwork(auth["user_id"], path, os.path.basename(path))
    return {"url": url}


# ====================
# Proof Endpoints
# ====================


@app.get("/api/v1/proofs", response_model=List[Proof], tags=["Proofs"])
async def list_proofs(
    status_filter: Optional[ProofStatus] = Query(None, alias="status", description="Filter by status"),
    seed_id: Optional[str] = Query(None, description="Filter by seed"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    return await service.list_proofs(
        auth["user_id"], status=status_filter, seed_id=seed_id, limit=limit, offset=offset
    )


@app.get("/api/v1/proofs/by-code/{public_id}", response_model=ProofDetailsResponse, tags=["Proofs"])
async def get_proof_by_code(
    public_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Match a physical mailpiece to its proof"""
    proof = await service.get_proof_by_code(public_id, auth["user_id"])
    return await service.get_proof_details(proof.proof_id, auth["user_id"])


@app.get("/api/v1/proofs/{proof_id}", response_model=ProofDetailsResponse, tags=["Proofs"])
async def get_proof(
    proof_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Proof with live provider details when available"""
    return await service.get_proof_details(proof_id, auth["user_id"])


@app.post("/api/v1/proofs/{proof_id}/review", response_model=Proof, tags=["Proofs"])
async def review_proof(
    proof_id: str,
    request: ProofReviewRequest,
    lifecycle=Depends(get_lifecycle),
    auth: dict = Depends(get_auth_context),
):
    """Rate a received proof; always completes it"""
    return await lifecycle.submit_review(proof_id, auth["user_id"], request)


@app.put("/api/v1/proofs/{proof_id}/status", response_model=Proof, tags=["Proofs"])
async def set_proof_status(
    proof_id: str,
    request: ProofStatusRequest,
    lifecycle=Depends(get_lifecycle),
    auth: dict = Depends(get_auth_context),
):
    return await lifecycle.set_status(proof_id, auth["user_id"], request.status)


@app.post("/api/v1/proofs/{proof_id}/physical-copy", response_model=Proof, tags=["Proofs"])
async def upload_physical_copy(
    proof_id: str,
    file: UploadFile = File(...),
    batch_id: Optional[str] = Form(None),
    lifecycle=Depends(get_lifecycle),
    auth: dict = Depends(get_auth_context),
):
    """Photo of the received mailpiece, forwarded to scan ingestion"""
    resize = settings.resize
    with tempfile.TemporaryDirectory(prefix="proof-scan-") as work_dir:
        path = await save_upload(file, work_dir, resize.upload_extensions, resize.upload_max_bytes)
        return await lifecycle.attach_physical_copy(
            proof_id,
            auth["user_id"],
            path,
            batch_id=batch_id,
            work_dir=work_dir,
        )


@app.delete("/api/v1/proofs/{proof_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Proofs"])
async def delete_proof(
    proof_id: str,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    await service.delete_proof(proof_id, auth["user_id"])
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ====================
# Account & Scheduler Endpoints
# ====================


@app.put("/api/v1/account/provider-key", tags=["Account"])
async def set_provider_key(
    request: ProviderKeyRequest,
    service=Depends(get_service),
    auth: dict = Depends(get_auth_context),
):
    """Store the caller's Lob API key"""
    owner = await service.set_provider_api_key(auth["user_id"], request.api_key)
    return {"user_id": owner.user_id, "has_provider_credentials": owner.has_provider_credentials}


@app.post("/api/v1/scheduler/tick", response_model=TickReport, tags=["Scheduler"])
async def scheduler_tick(runner=Depends(get_runner)):
    """Run every due seed once"""
    return await runner.tick()


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.proof_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
