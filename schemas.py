"""
Database Schemas

Pydantic models for the marketplace collections. Each model maps to a MongoDB
collection named after the lowercased class name:
- Store -> "store" collection
- Product -> "product" collection
- ProductVariant -> "productvariant" collection
- Cart -> "cart" collection
- StoreNotification -> "storenotification" collection
- Advertisement -> "advertisement" collection
- UserRole -> "userrole" collection

Documents coming back from the database are loosely shaped (nullable fields,
free-form JSON lists). They are normalized here, once, by the validators below.
"""
from datetime import datetime
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

WeekDay = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
SizeType = Literal["none", "letter", "number"]

TIME_PATTERN = r"^\d{2}:\d{2}(:\d{2})?$"


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _as_label_list(v: Any) -> List[str]:
    if not isinstance(v, list):
        return []
    return [str(item).strip() for item in v if item is not None and str(item).strip()]


def _reject_nulls(data: Any, fields: Tuple[str, ...]) -> Any:
    # A partial update may omit these, but must not clear them
    if isinstance(data, dict):
        nulls = [name for name in fields if name in data and data[name] is None]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
    return data


# ---------- Stores ----------

class StoreProfile(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    whatsapp: str = Field(..., min_length=10, max_length=20, description="Contact for order messages")
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, description="Region code, e.g. SP")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    opening_time: Optional[str] = Field(None, pattern=TIME_PATTERN, description="HH:MM[:SS], viewer local time")
    closing_time: Optional[str] = Field(None, pattern=TIME_PATTERN, description="HH:MM[:SS], viewer local time")
    operating_days: Optional[List[WeekDay]] = None

    @field_validator("state", "opening_time", "closing_time", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)

    @field_validator("operating_days", mode="before")
    @classmethod
    def days_must_be_list(cls, v):
        # Older rows carry arbitrary JSON here
        if not isinstance(v, list):
            return None
        return v


class Store(StoreProfile):
    id: Optional[str] = None
    user_id: str = Field(..., description="Owning lojista account")
    created_at: Optional[datetime] = None


class StoreUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    whatsapp: Optional[str] = Field(None, min_length=10, max_length=20)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    opening_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    closing_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    operating_days: Optional[List[WeekDay]] = None

    @model_validator(mode="before")
    @classmethod
    def required_fields_stay_set(cls, data):
        return _reject_nulls(data, ("name", "whatsapp", "address", "city"))

    @field_validator("state", "opening_time", "closing_time", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)


class StorePublic(StoreProfile):
    id: str


# ---------- Products ----------

class ProductBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field(..., min_length=1, description="Free text label")
    stock: Optional[int] = Field(None, ge=0, description="Used only when the product has no variants")
    image_url: Optional[str] = None
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    size_type: SizeType = "none"

    @field_validator("description", "image_url", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)

    @field_validator("colors", "sizes", mode="before")
    @classmethod
    def labels_must_be_list(cls, v):
        return _as_label_list(v)

    @field_validator("size_type", mode="before")
    @classmethod
    def default_size_type(cls, v):
        return v or "none"

    @property
    def has_variant_axes(self) -> bool:
        return bool(self.colors or self.sizes)


class ProductCreate(ProductBase):
    price: float = Field(..., gt=0, description="Price must be greater than zero")


class Product(ProductBase):
    id: Optional[str] = None
    store_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, min_length=1)
    stock: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    size_type: Optional[SizeType] = None

    @model_validator(mode="before")
    @classmethod
    def required_fields_stay_set(cls, data):
        return _reject_nulls(data, ("name", "price", "category", "size_type", "colors", "sizes"))

    @field_validator("description", "image_url", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)

    @field_validator("colors", "sizes", mode="before")
    @classmethod
    def labels_must_be_list(cls, v):
        return _as_label_list(v)


class ProductVariant(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    product_id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    stock: int = Field(0, ge=0)
    sku: Optional[str] = None

    @field_validator("size", "color", "sku", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)

    @field_validator("stock", mode="before")
    @classmethod
    def missing_stock_is_zero(cls, v):
        return 0 if v is None else v


class CatalogProduct(Product):
    """A product joined with its store's public profile."""
    store: StorePublic
    is_open: bool = True
    operating_days_label: Optional[str] = None
    distance_km: Optional[float] = None


class VariantAvailability(BaseModel):
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    available_colors: List[str] = Field(default_factory=list)
    available_sizes: List[str] = Field(default_factory=list)
    stock: Optional[int] = Field(None, description="None until a color or size is selected")
    variant: Optional[ProductVariant] = None


# ---------- Cart ----------

class CartStoreInfo(BaseModel):
    id: Optional[str] = None
    name: str
    whatsapp: str
    address: Optional[str] = None
    city: Optional[str] = None


class CartVariant(BaseModel):
    id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None


class CartItem(BaseModel):
    id: str = Field(..., description="Product id, or product id and variant id joined by '-'")
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    quantity: int = Field(1, ge=1)
    variant: Optional[CartVariant] = None
    store: CartStoreInfo


class Cart(BaseModel):
    session_id: str
    items: List[CartItem] = Field(default_factory=list)


class StoreOrder(BaseModel):
    store_name: str
    whatsapp: str
    total: float
    message: str
    url: str


# ---------- Notifications ----------

class StoreNotification(BaseModel):
    id: Optional[str] = None
    store_id: str
    product_id: Optional[str] = None
    notification_type: str = Field(..., description="e.g. cart_add")
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None


# ---------- Homepage advertisements ----------

AppRole = Literal["admin", "user"]

DEFAULT_GRADIENT = "from-primary via-primary/90 to-primary/80"


class UserRole(BaseModel):
    user_id: str
    role: AppRole = "user"


class AdvertisementCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=120)
    subtitle: str = Field(..., min_length=1, max_length=255)
    cta_text: str = Field("Explorar", min_length=1, max_length=40, description="Button label")
    gradient: str = Field(DEFAULT_GRADIENT, min_length=1, description="Tailwind gradient classes")
    image_url: Optional[str] = None
    is_active: bool = True
    display_order: int = 0
    store_id: Optional[str] = None

    @field_validator("image_url", "store_id", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)


class Advertisement(AdvertisementCreate):
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("is_active", mode="before")
    @classmethod
    def missing_flag_is_active(cls, v):
        return True if v is None else v

    @field_validator("display_order", mode="before")
    @classmethod
    def missing_order_is_zero(cls, v):
        return 0 if v is None else v
