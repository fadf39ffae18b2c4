"""
Schemas for the LuxeTrack order ledger and AI endpoints

Attributes are snake_case in Python and camelCase on the wire, so a stored
"luxetrack_orders" value keeps the dashboard's original JSON format:
- Order -> persisted sequence item and API response
- OrderInput -> create/update payload (no id, no derived amounts)
- DashboardStats, ChartPoint, ChannelShare, StatCard -> dashboard projections
"""
import math
from datetime import date
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Amount = Union[int, float]

AMOUNT_FIELDS = ("unit_price", "quantity", "discount", "shipping_fee", "deposit", "cost_price")


def coerce_amount(value) -> Amount:
    """Read a raw numeric input, treating absent or non-numeric values as 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        if number.is_integer():
            number = int(number)
    if isinstance(number, float) and not math.isfinite(number):
        return 0
    return number


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderStatus(str, Enum):
    PENDING = "Pending"
    SHIPPING = "Shipping"
    COMPLETED = "Completed"
    RETURNED = "Returned"


class SalesChannel(str, Enum):
    FACEBOOK = "Facebook"
    INSTAGRAM = "Instagram"
    ZALO = "Zalo"
    WEBSITE = "Website"


class Region(str, Enum):
    NORTH = "North"
    SOUTH = "South"


class OrderInput(CamelModel):
    order_date: str = Field(default_factory=lambda: date.today().isoformat(), description="ISO date the order was placed")
    ship_date: str = Field("", description="ISO ship date, empty when not shipped yet")
    status: OrderStatus = OrderStatus.PENDING
    channel: SalesChannel = SalesChannel.FACEBOOK
    brand: str = ""
    product_name: str = ""

    unit_price: Amount = 0
    quantity: Amount = 1
    discount: Amount = 0
    shipping_fee: Amount = 0
    deposit: Amount = 0
    cost_price: Amount = 0

    customer_name: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    region: Region = Region.SOUTH
    carrier: str = ""
    tracking_code: str = ""

    @field_validator(*AMOUNT_FIELDS, mode="before")
    @classmethod
    def amount_non_negative(cls, v):
        number = coerce_amount(v)
        if number < 0:
            raise ValueError("must be greater than or equal to 0")
        return number


class Financials(CamelModel):
    total_amount: Amount = Field(..., description="Calculated: unit_price*quantity - discount + shipping_fee")
    cod_amount: Amount = Field(..., description="Calculated: total_amount - deposit")
    profit: Amount = Field(..., description="Calculated: (unit_price-cost_price)*quantity - discount")


class Order(OrderInput):
    id: str = Field(..., description="Order code, e.g. #DH1210")
    total_amount: Amount = 0
    cod_amount: Amount = 0
    profit: Amount = 0


class DashboardStats(CamelModel):
    total_revenue: Amount = 0
    total_profit: Amount = 0
    total_orders: int = 0
    pending_orders: int = 0


class ChartPoint(CamelModel):
    name: str
    revenue: Amount
    profit: Amount


class ChannelShare(CamelModel):
    channel: SalesChannel
    count: int
    percentage: int


class StatCard(CamelModel):
    label: str
    value: str


class Dashboard(CamelModel):
    stats: DashboardStats
    cards: List[StatCard]
    chart: List[ChartPoint]
    channels: List[ChannelShare]


class ChatMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str = ""
    complete: bool = True


class ChatRequest(CamelModel):
    message: str


class ImageAnalysisRequest(CamelModel):
    image: str = Field(..., description="Base64 image data or a data: URL")
    prompt: Optional[str] = Field(None, description="Override for the default inspection instruction")


class ImageAnalysisResponse(CamelModel):
    analysis: str
