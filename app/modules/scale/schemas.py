# app/modules/scale/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.modules.sales.schemas import UnitOfMeasure

# ==================== REQUEST SCHEMAS ====================

class ReadingCreateRequest(BaseModel):
    weight: float = Field(..., gt=0, description="Peso leído en kg")
    timestamp: Optional[datetime] = Field(None, description="Momento de la lectura; por defecto ahora")

class BindProductRequest(BaseModel):
    product_id: int

# ==================== RESPONSE SCHEMAS ====================

class ScaleReadingResponse(BaseModel):
    id: int
    timestamp: datetime
    weight: float
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    product_code: Optional[str] = None
    unit: Optional[UnitOfMeasure] = None
    consumed: bool = False
    sale_id: Optional[int] = None
    total: Optional[float] = Field(None, description="Peso en la unidad del producto por su precio")

class ScaleReadingsResponse(BaseModel):
    readings: List[ScaleReadingResponse]
    count: int
    total_weight: float
    total_value: float

class ScaleStatusResponse(BaseModel):
    connected: bool
    url: str
    weight: Optional[float] = None
    stable: Optional[bool] = None
    message: str
