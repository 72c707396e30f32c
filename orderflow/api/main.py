"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from orderflow.api.dependencies import require_api_key
from orderflow.api.error_handlers import register_error_handlers
from orderflow.catalog import ProductCatalogue, to_money
from orderflow.config import load_config
from orderflow.engine.engine import FlowEngine
from orderflow.flows import CHECKOUT_FLOW, build_registry
from orderflow.orchestrator import OrderOrchestrator

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Orderflow API",
    description="Multi-step order submission engine",
    version="1.0.0",
    dependencies=[Depends(require_api_key)],
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

cfg = load_config()

# Use real Postgres/Redis when env is set, else in-memory stubs
if os.getenv("DATABASE_URL") and os.getenv("USE_POSTGRES_ORDERS", "").lower() in ("1", "true", "yes"):
    from orderflow.database.postgres_real import PostgresDB

    postgres_db = PostgresDB(connection_string=os.environ["DATABASE_URL"])
else:
    from orderflow.database.postgres import PostgresDB

    postgres_db = PostgresDB()

if os.getenv("REDIS_URL"):
    from orderflow.database.redis_real import RedisCache

    redis_cache = RedisCache(url=os.environ["REDIS_URL"], default_ttl=cfg.drafts.ttl_seconds)
else:
    from orderflow.database.redis import RedisCache

    redis_cache = RedisCache(default_ttl=cfg.drafts.ttl_seconds)

catalogue = ProductCatalogue.from_config(cfg)
flow_engine = FlowEngine(build_registry(cfg, catalogue))
orchestrator = OrderOrchestrator(postgres_db, flow_engine, drafts=redis_cache, draft_ttl=cfg.drafts.ttl_seconds)


def get_orchestrator() -> OrderOrchestrator:
    """Dependency for the order orchestrator"""
    return orchestrator


def get_catalogue() -> ProductCatalogue:
    return catalogue


# ============================================================================
# MODELS
# ============================================================================


class StartOrderRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    flow: str = CHECKOUT_FLOW


class StepResponse(BaseModel):
    order_id: str
    flow: str
    step: Optional[str] = None
    status: str
    next_step: Optional[str] = None
    complete: bool = False
    message: str = ""
    field_errors: Dict[str, str] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# ROUTES
# ============================================================================

api_router = APIRouter()


@api_router.post("/orders", response_model=StepResponse, status_code=status.HTTP_201_CREATED, tags=["Orders"])
async def start_order(request: StartOrderRequest, orch: OrderOrchestrator = Depends(get_orchestrator)):
    return await orch.start_order(request.user_id, request.flow)


@api_router.get("/orders", tags=["Orders"])
async def list_orders(
    user_id: Optional[str] = None,
    status_filter: Optional[str] = None,
    orch: OrderOrchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    return [o.to_dict() for o in orch.list_orders(user_id=user_id, status=status_filter)]


@api_router.get("/orders/{order_id}", tags=["Orders"])
async def get_order(order_id: str, orch: OrderOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return orch.get_order(order_id).to_dict()


@api_router.post("/orders/{order_id}/steps/{step_id}", response_model=StepResponse, tags=["Orders"])
async def submit_step(
    order_id: str,
    step_id: str,
    payload: Dict[str, Any] = Body(default_factory=dict),
    orch: OrderOrchestrator = Depends(get_orchestrator),
):
    return await orch.submit_step(order_id, step_id, payload)


@api_router.get("/orders/{order_id}/draft", tags=["Orders"])
async def get_draft(order_id: str, orch: OrderOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    draft = orch.get_draft(order_id)
    if not draft:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft


@api_router.get("/orders/{order_id}/history", tags=["Orders"])
async def get_history(order_id: str, orch: OrderOrchestrator = Depends(get_orchestrator)) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in orch.get_history(order_id)]


@api_router.delete("/orders/{order_id}", tags=["Orders"])
async def cancel_order(order_id: str, orch: OrderOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    order = await orch.cancel_order(order_id)
    return order.to_dict()


@api_router.get("/flows/{flow_name}", tags=["Flows"])
async def describe_flow(flow_name: str, orch: OrderOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return orch.describe_flow(flow_name)


@api_router.get("/products", tags=["Products"])
async def list_products(cat: ProductCatalogue = Depends(get_catalogue)) -> List[Dict[str, Any]]:
    return [
        {"sku": p.sku, "name": p.name, "unit_price": to_money(p.unit_price), "currency": cat.currency}
        for p in cat.list_products()
    ]


app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check (order store, draft cache)."""
    try:
        db_ok = postgres_db.ping()
    except Exception as e:
        logger.warning("Order store ping failed: %s", e)
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": {"orders": "connected" if db_ok else "unavailable", "drafts": redis_cache.ping()},
        "timestamp": datetime.now().isoformat(),
    }


@app.on_event("startup")
async def startup_event():
    postgres_db.create_tables()
    logger.info("Orderflow API started: flows=%s store=%s", flow_engine.registry.names(), type(postgres_db).__module__)
