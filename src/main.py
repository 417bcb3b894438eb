"""
FastAPI application serving the Policy Renewal Assistant.
Provides REST API endpoints for chat and monitoring.
"""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from data.mock_orchestrator import build_mock_transport
from src.circuit_breaker import CircuitBreaker
from src.config import settings
from src.conversation_state import RenewalState
from src.dialog import RenewalDialog, TurnStatus
from src.orchestrator_client import OrchestratorClient, RenewalPipeline
from src.session_store import SessionStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Pydantic models for API
class ChatRequest(BaseModel):
    """Request model for chat endpoint."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "12345",
                "session_id": "session_123",
            }
        }
    )

    message: str = Field(..., description="User's message")
    session_id: str = Field(..., description="Session identifier for conversation tracking")
    policy_number: str | None = Field(
        None, description="Optional policy number to seed a new session"
    )
    birth_year: str | None = Field(None, description="Optional birth year to seed a new session")


class ChatResponse(BaseModel):
    """Response model for chat endpoint."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "session_id": "session_123",
                "status": "prompted",
                "messages": ["What is your birth year?"],
                "awaiting": "birth_year_prompt",
            }
        }
    )

    session_id: str = Field(..., description="Session identifier")
    status: TurnStatus = Field(..., description="prompted, completed or error")
    messages: list[str] = Field(..., description="Messages to show the user, in order")
    awaiting: str | None = Field(None, description="Prompt the conversation is waiting on")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    orchestrator_mock: bool
    orchestrator_circuit_breaker: dict


# Process-wide collaborators
session_store = SessionStore(
    max_sessions=settings.max_sessions, ttl_seconds=settings.session_ttl_seconds
)
orchestrator_breaker = CircuitBreaker(
    failure_threshold=settings.circuit_breaker_failure_threshold,
    timeout=settings.circuit_breaker_timeout,
    name="OrchestratorCircuitBreaker",
)

renewal_dialog = None


def get_dialog() -> RenewalDialog:
    """Get or create the global dialog instance."""
    global renewal_dialog
    if renewal_dialog is None:
        transport = build_mock_transport() if settings.use_mock_orchestrator else None
        if transport is not None:
            logger.warning("No orchestrator tenancy configured, using mock orchestrator")
        client = OrchestratorClient(settings.orchestrator_config(), transport=transport)
        pipeline = RenewalPipeline(client, circuit_breaker=orchestrator_breaker)
        renewal_dialog = RenewalDialog(session_store, pipeline)
    return renewal_dialog


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Policy Renewal Assistant API")
    logger.info(f"Environment: {settings.environment}")

    get_dialog()
    logger.info("Renewal dialog initialized successfully")

    yield

    logger.info("Shutting down Policy Renewal Assistant API")


# Create FastAPI app
app = FastAPI(
    title="Policy Renewal Assistant API",
    description="Conversational lookup of insurance policy renewal dates",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API Endpoints


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {"message": "Policy Renewal Assistant API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    Returns service status and circuit breaker state.
    """
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        orchestrator_mock=settings.use_mock_orchestrator,
        orchestrator_circuit_breaker=orchestrator_breaker.get_state(),
    )


@app.post("/chat", response_model=ChatResponse, tags=["Chat"])
def chat(request: ChatRequest):
    """
    Send one turn of the renewal conversation.

    Sync handler: the renewal lookup blocks for over 20 seconds and
    runs in the thread pool, off the event loop.

    Example conversation:

    Request 1: {"message": "hi", "session_id": "s1"}
    Response 1: status "prompted", messages ["What's your 5 digit policy number?"]

    Request 2: {"message": "12345", "session_id": "s1"}
    Response 2: status "prompted", messages ["What is your birth year?"]

    Request 3: {"message": "1990", "session_id": "s1"}
    Response 3: status "completed", messages ending with the renewal date
    """
    try:
        logger.info(f"Chat request: session={request.session_id}")

        options = None
        if request.policy_number or request.birth_year:
            options = RenewalState(
                policy_number=request.policy_number, birth_year=request.birth_year
            )

        result = get_dialog().run_turn(request.session_id, request.message, options=options)

        return ChatResponse(
            session_id=request.session_id,
            status=result.status,
            messages=result.messages,
            awaiting=result.awaiting,
        )

    except Exception as e:
        logger.error(f"Error in /chat endpoint: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred processing your request. Please try again.",
        ) from e


@app.post("/reset-conversation/{session_id}", tags=["Chat"])
async def reset_conversation(session_id: str):
    """
    Forget the collected policy number, birth year and pending prompt
    for a session.
    """
    try:
        existed = session_store.reset(session_id)
        logger.info(f"Conversation reset for session {session_id} (existed={existed})")

        return {"message": f"Conversation reset for session {session_id}", "session_id": session_id}

    except Exception as e:
        logger.error(f"Error resetting conversation: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error resetting conversation"
        ) from e


@app.get("/ready")
def ready():
    return {"status": "ready"}


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    """
    Monitoring snapshot.

    Returns:
    - Circuit breaker state
    - Active sessions
    - Environment
    """
    return {
        "circuit_breaker": orchestrator_breaker.get_state(),
        "active_sessions": len(session_store),
        "environment": settings.environment,
    }


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8080)),
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
