from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from ai_service import AIAssistant, ChatTranscript, describe_image, relay_chat, split_data_url
from database import build_store
from exceptions import BadRequestError, custom_exception_handler
from ledger import ALL, OrderLedger, derive
from logging_config import get_logger, setup_logging
from schemas import (
    ChatMessage,
    ChatRequest,
    Dashboard,
    Financials,
    ImageAnalysisRequest,
    ImageAnalysisResponse,
    Order,
    OrderInput,
)
from settings import Settings, get_settings

logger = get_logger(__name__)

router = APIRouter()


# Dependencies
def get_ledger(request: Request) -> OrderLedger:
    return request.app.state.ledger


def get_assistant(request: Request) -> AIAssistant:
    return request.app.state.assistant


def get_transcript(request: Request) -> ChatTranscript:
    return request.app.state.transcript


# Health and test
@router.get("/")
def read_root():
    return {"message": "LuxeTrack OMS Backend Running"}


@router.get("/test")
def test_store(request: Request):
    response = {
        "backend": "✅ Running",
        "store": "❌ Not Available",
        "store_backend": request.app.state.settings.STORE_BACKEND,
        "orders_key": request.app.state.settings.ORDERS_KEY,
        "orders": 0,
    }
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is not None:
        describe = getattr(ledger.store, "describe", None)
        response["store"] = f"✅ {describe()}" if describe else "✅ Connected"
        response["orders"] = len(ledger)
    return response


# Order Endpoints
@router.get("/api/orders", response_model=List[Order])
def list_orders(
    q: Optional[str] = Query(default=None, description="Search by order ID, customer name or phone"),
    status: str = Query(default=ALL, description="Order status or All"),
    brand: str = Query(default=ALL, description="Brand or All"),
    ledger: OrderLedger = Depends(get_ledger),
):
    return ledger.filter(q or "", status, brand)


@router.get("/api/orders/brands", response_model=List[str])
def list_brands(ledger: OrderLedger = Depends(get_ledger)):
    return ledger.brands()


@router.post("/api/orders/preview", response_model=Financials)
def preview_financials(order: OrderInput):
    return derive(order)


@router.post("/api/orders", response_model=Order, status_code=201)
def create_order(order: OrderInput, ledger: OrderLedger = Depends(get_ledger)):
    return ledger.create(order)


@router.get("/api/orders/{order_id}", response_model=Order)
def get_order(order_id: str, ledger: OrderLedger = Depends(get_ledger)):
    return ledger.get(order_id)


@router.put("/api/orders/{order_id}", response_model=Order)
def update_order(order_id: str, order: OrderInput, ledger: OrderLedger = Depends(get_ledger)):
    return ledger.update(order_id, order)


@router.delete("/api/orders/{order_id}")
def delete_order(order_id: str, ledger: OrderLedger = Depends(get_ledger)):
    ledger.delete(order_id)
    return {"success": True}


# Dashboard
@router.get("/api/dashboard", response_model=Dashboard)
def dashboard(ledger: OrderLedger = Depends(get_ledger)):
    return ledger.dashboard()


# AI assistant
@router.get("/api/ai/chat/messages", response_model=List[ChatMessage])
def chat_messages(transcript: ChatTranscript = Depends(get_transcript)):
    return transcript.snapshot()


@router.post("/api/ai/chat")
async def chat(
    payload: ChatRequest,
    assistant: AIAssistant = Depends(get_assistant),
    transcript: ChatTranscript = Depends(get_transcript),
):
    message = payload.message.strip()
    if not message:
        raise BadRequestError("Message must not be empty", field="message")
    return StreamingResponse(
        relay_chat(assistant, transcript, message),
        media_type="text/plain; charset=utf-8",
    )


@router.post("/api/ai/vision", response_model=ImageAnalysisResponse)
async def analyze_image(payload: ImageAnalysisRequest, assistant: AIAssistant = Depends(get_assistant)):
    _, data = split_data_url(payload.image)
    if not data:
        raise BadRequestError("Image data must not be empty", field="image")
    analysis = await describe_image(assistant, payload.image, payload.prompt)
    return ImageAnalysisResponse(analysis=analysis)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s...", settings.APP_NAME)
        ledger = OrderLedger(
            build_store(settings),
            key=settings.ORDERS_KEY,
            recover_corrupt=settings.RECOVER_CORRUPT_STATE,
        )
        ledger.load()
        app.state.ledger = ledger
        app.state.assistant = AIAssistant.from_settings(settings)
        app.state.transcript = ChatTranscript()

        yield

        logger.info("Shutting down %s...", settings.APP_NAME)
        await app.state.assistant.close()

    app = FastAPI(title=settings.APP_NAME, version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HTTPException, custom_exception_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.API_HOST, port=settings.PORT)
