from utils.response_helpers import CamelModel
from routers.users.schemas import UserSummary
from routers.products.schemas import ProductWithDetailsResponse
from typing import Optional, List, Union, Any, Dict
from datetime import datetime


class OrderCreate(CamelModel):
    amount: Optional[float] = None
    ship_address: Optional[str] = None
    weight: Optional[Union[str, float]] = None
    seller_id: Optional[str] = None


class DispatchDetails(CamelModel):
    method: Optional[str] = None
    date: Optional[datetime] = None


class TransactionResponse(CamelModel):
    id: str
    order_id: str
    amount: float
    status: str
    tx_type: str
    tx_method: Optional[str] = None
    tx_details: Optional[Dict[str, Any]] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderResponse(CamelModel):
    id: str
    buyer_id: str
    seller_id: str
    prod_id: Optional[str] = None
    amount: float
    ship_address: str
    weight: str
    status: str
    review: Optional[Dict[str, Any]] = None
    dispatched: bool = False
    dispatch_details: Optional[Dict[str, Any]] = None
    delivery_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderWithDetailsResponse(OrderResponse):
    buyer: Optional[UserSummary] = None
    seller: Optional[UserSummary] = None
    product: Optional[ProductWithDetailsResponse] = None


class OrderCreateResponse(CamelModel):
    message: str
    order_details: OrderResponse


class OrderDetailResponse(CamelModel):
    status: str = "success"
    order: OrderWithDetailsResponse


class OrderPage(CamelModel):
    count: int
    rows: List[OrderWithDetailsResponse]


class OrderListResponse(CamelModel):
    status: str = "success"
    orders_data: OrderPage


class OrderTransactionResponse(CamelModel):
    status: str = "success"
    transaction: TransactionResponse
