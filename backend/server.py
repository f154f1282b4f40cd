from fastapi import FastAPI, APIRouter, HTTPException
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict
from datetime import datetime, timezone

from currency import format_currency
from line_items import LineItem
from order_pricing import OrderInput, OrderPricingService, OrderValidationError, PricedOrder
from tax_calculation import (
    ItemsTaxCalculationResult,
    TaxCalculationMethod,
    TaxCalculationResult,
    calculate_tax,
    calculate_tax_for_items,
    get_tax_calculation_method,
)
from unit_conversion import (
    DisplayQuantity,
    QuantityRollup,
    UnitCategory,
    calculate_total_quantity,
    convert_to_base_unit,
    convert_to_display_unit,
    detect_unit_category,
    format_quantity,
)

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

SERVICE_NAME = "Order Pricing API"
SERVICE_VERSION = "1.0.0"

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Order Pricing Engine")

# ==================== CORS CONFIGURATION (MUST BE FIRST) ====================
# Default allowed origins for local development
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3001",
]

cors_origins_env = os.environ.get('CORS_ORIGINS', '')
if cors_origins_env:
    cors_origins = [origin.strip() for origin in cors_origins_env.split(',') if origin.strip()]
else:
    cors_origins = DEFAULT_CORS_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "Accept",
        "Origin",
    ],
    max_age=600,  # Cache preflight for 10 minutes
)

# ==================== HEALTH ENDPOINT (ROOT LEVEL) ====================
@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring and CORS verification"""
    return {
        "ok": True,
        "time": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }

api_router = APIRouter(prefix="/api")

pricing_service = OrderPricingService()

# ==================== REQUEST / RESPONSE MODELS ====================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class LineTaxRequest(_CamelModel):
    unit_price: float
    quantity: float
    tax_rate: float = 0
    method: Optional[TaxCalculationMethod] = None

class ItemsTaxRequest(_CamelModel):
    items: List[LineItem]
    method: Optional[TaxCalculationMethod] = None

class UnitRequest(_CamelModel):
    unit: str

class UnitCategoryResponse(_CamelModel):
    unit: str
    category: UnitCategory

class UnitConvertRequest(_CamelModel):
    quantity: float
    unit: str

class UnitConvertResponse(_CamelModel):
    quantity: float
    unit: str
    category: UnitCategory
    base_quantity: float
    display: DisplayQuantity
    formatted: str

class RollupRequest(_CamelModel):
    items: List[LineItem]

class PricedOrderResponse(PricedOrder):
    formatted_total: str

# ==================== PRICING ROUTES ====================

@api_router.get("/pricing/method")
async def get_pricing_method():
    """Tax calculation method currently in effect"""
    return {"method": get_tax_calculation_method()}

@api_router.post("/pricing/tax", response_model=TaxCalculationResult)
async def price_line(data: LineTaxRequest):
    """Subtotal / tax / total for a single line"""
    method = data.method or get_tax_calculation_method()
    return calculate_tax(data.unit_price, data.quantity, data.tax_rate, method)

@api_router.post("/pricing/tax/items", response_model=ItemsTaxCalculationResult)
async def price_items(data: ItemsTaxRequest):
    """Aggregate tax calculation with per-item breakdown"""
    method = data.method or get_tax_calculation_method()
    return calculate_tax_for_items(data.items, method)

# ==================== UNIT ROUTES ====================

@api_router.post("/units/detect", response_model=UnitCategoryResponse)
async def detect_unit(data: UnitRequest):
    return UnitCategoryResponse(unit=data.unit, category=detect_unit_category(data.unit))

@api_router.post("/units/convert", response_model=UnitConvertResponse)
async def convert_unit(data: UnitConvertRequest):
    """Base-unit and display-unit view of a quantity"""
    category = detect_unit_category(data.unit)
    base_quantity = convert_to_base_unit(data.quantity, data.unit)
    display = convert_to_display_unit(base_quantity, category)
    return UnitConvertResponse(
        quantity=data.quantity,
        unit=data.unit,
        category=category,
        base_quantity=base_quantity,
        display=display,
        formatted=f"{format_quantity(display.value, category)} {display.unit}"
    )

@api_router.post("/units/rollup", response_model=Dict[str, QuantityRollup])
async def rollup_quantities(data: RollupRequest):
    """Quantity rollup keyed by inventory id"""
    return calculate_total_quantity(data.items)

# ==================== ORDER ROUTES ====================

@api_router.post("/orders/price", response_model=PricedOrderResponse)
async def price_order(data: OrderInput):
    """Validate an order form payload and compute its totals"""
    try:
        priced = pricing_service.price_order(data)
    except OrderValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error_code": e.error_code, "errors": e.errors}
        )
    return PricedOrderResponse(
        **priced.model_dump(),
        formatted_total=format_currency(priced.total)
    )

app.include_router(api_router)
logger.info(f"{SERVICE_NAME} routes registered; CORS origins: {cors_origins}")
