# --- File: main.py ---
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from api import endpoints
from api.models import (
    RsaKeyPairResponse, IdentityResponse, SealResponse, OpenResponse,
    SignBindingResponse, VerifyBindingResponse, MessageRecordModel, InboxResponse, SentHistoryResponse,
)
from contextlib import asynccontextmanager
import uvicorn
import logging
import config

from core.content_store import build_content_store
from core.ledger import SqliteMessageLedger
from envelope_crypto import BindingPolicy
from security.key_manager import KeyManager
from security.secure_communication import SecureCommunicator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    logger.info("Application startup sequence initiated...")

    if endpoints._key_manager_instance is None:
        logger.info("Lifespan: Initializing KeyManager...")
        endpoints._key_manager_instance = KeyManager(key_file_path=config.KEYS_FILE, rsa_bits=config.RSA_KEY_BITS)

    if endpoints._secure_communicator_instance is None:
        logger.info(f"Lifespan: Initializing SecureCommunicator (content store '{config.CONTENT_STORE}', "
                    f"ledger {config.LEDGER_DB_PATH})...")
        try:
            endpoints._secure_communicator_instance = SecureCommunicator(
                content_store=build_content_store(config.CONTENT_STORE),
                ledger=SqliteMessageLedger(config.LEDGER_DB_PATH),
                binding_policy=BindingPolicy(
                    max_age_seconds=config.BINDING_MAX_AGE_SECONDS,
                    max_future_skew_seconds=config.BINDING_MAX_FUTURE_SKEW_SECONDS,
                ),
            )
            logger.info("Lifespan: SecureCommunicator initialized.")
        except Exception:
            logger.exception("FATAL: Error during application startup initialization.")
            raise

    yield

    # --- Shutdown ---
    logger.info("Application shutdown sequence initiated...")
    communicator = endpoints._secure_communicator_instance
    if communicator and communicator.ledger:
        communicator.ledger.close()
        logger.info("Message ledger resources released.")
    logger.info("Application shutdown complete.")

app = FastAPI(
    title="Sealed Courier API",
    description="API for sealing and opening message envelopes, signing delivery bindings, and exchanging messages.",
    version="1.0.0",
    lifespan=lifespan
)

logger.info(f"CORS allowed origins: {config.CORS_ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"HTTP Exception: Status Code={exc.status_code}, Detail={exc.detail}, Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": f"An error occurred: {exc.detail}"},
    )

@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled Exception at Path {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"message": "An unexpected internal server error occurred. Please check server logs."},
    )

app.post(
    "/keys/rsa", response_model=RsaKeyPairResponse, summary="Generate an RSA Recipient Key Pair",
    tags=["Keys"]
)(endpoints.create_rsa_keypair)

app.post(
    "/keys/identity", response_model=IdentityResponse, summary="Create or Look Up a Local Identity",
    tags=["Keys"]
)(endpoints.create_identity)

app.post(
    "/envelopes/seal", response_model=SealResponse, summary="Seal a Message for a Recipient",
    tags=["Envelopes"]
)(endpoints.seal_envelope)

app.post(
    "/envelopes/open", response_model=OpenResponse, summary="Open an Envelope with a Private Key",
    tags=["Envelopes"]
)(endpoints.open_envelope)

app.post(
    "/bindings/sign", response_model=SignBindingResponse, summary="Sign a Delivery Binding",
    tags=["Bindings"]
)(endpoints.sign_binding)

app.post(
    "/bindings/verify", response_model=VerifyBindingResponse, summary="Verify a Delivery Binding",
    tags=["Bindings"]
)(endpoints.verify_binding)

app.post(
    "/messages/send", response_model=MessageRecordModel, summary="Seal, Store, Sign and Publish a Message",
    tags=["Messages"], status_code=201
)(endpoints.send_message)

app.post(
    "/messages/inbox", response_model=InboxResponse, summary="Fetch, Open and Verify a Recipient's Messages",
    tags=["Messages"]
)(endpoints.fetch_inbox)

app.get(
    "/messages/sent/{sender}", response_model=SentHistoryResponse, summary="Sent Message History (Newest First)",
    tags=["Messages"]
)(endpoints.get_sent_history)

@app.get("/", summary="Root endpoint", tags=["General"], include_in_schema=False)
async def read_root():
    return {"message": "Welcome to the Sealed Courier API! See /docs for details."}

if __name__ == "__main__":
    logger.info("Starting Sealed Courier API server using Uvicorn...")
    if config.CONTENT_STORE == "memory":
        logger.warning("CONTENT_STORE is 'memory'. Stored envelopes are lost on restart while the ledger persists.")

    logger.info(f"Server starting on {config.HOST}:{config.PORT} with log level {config.LOG_LEVEL_FROM_ENV.lower()}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL_FROM_ENV.lower(),
    )
