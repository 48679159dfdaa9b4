# numberlink/schemas/vehicle.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class VehicleCreate(BaseModel):
    vehicle_number: str
    vehicle_type: str          # 택시 | 화물 | 버스 ...
    tonnage: Optional[str] = None
    year_model: Optional[int] = None
    region: str
    insurance_rate: float = Field(ge=0)
    monthly_fee: int = Field(ge=0)
    description: Optional[str] = None
    is_available: Optional[bool] = True


class VehicleUpdate(BaseModel):
    vehicle_number: Optional[str] = None
    vehicle_type: Optional[str] = None
    tonnage: Optional[str] = None
    year_model: Optional[int] = None
    region: Optional[str] = None
    insurance_rate: Optional[float] = Field(default=None, ge=0)
    monthly_fee: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    is_available: Optional[bool] = None


class VehicleOut(BaseModel):
    """Owner's view of its own listing."""
    id: int
    company_id: int
    vehicle_number: str
    vehicle_type: str
    tonnage: Optional[str]
    year_model: Optional[int]
    region: str
    insurance_rate: float
    monthly_fee: int
    description: Optional[str]
    is_available: bool
    view_count: int
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class PublicCompanyOut(BaseModel):
    company_name: Optional[str]
    verified: bool


class PublicVehicleOut(BaseModel):
    """Listing/detail payload. Carries no company phone of any kind."""
    id: int
    company_id: int
    vehicle_number: str
    vehicle_type: str
    tonnage: Optional[str]
    year_model: Optional[int]
    region: str
    insurance_rate: float
    monthly_fee: int
    description: Optional[str]
    is_available: bool
    view_count: int
    created_at: datetime
    updated_at: Optional[datetime]
    company: PublicCompanyOut


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class VehicleListResponse(BaseModel):
    vehicles: list[PublicVehicleOut]
    pagination: Pagination


class RegionStat(BaseModel):
    region: str
    count: int
    average_fee: Optional[float]


class VehicleTypeStat(BaseModel):
    vehicle_type: str
    count: int
    average_fee: Optional[float]
