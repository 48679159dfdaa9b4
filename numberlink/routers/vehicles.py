# numberlink/routers/vehicles.py
"""
Vehicle listings.
Public reads go through disclosure_service and never carry company phones;
writes are restricted to the owning company.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from numberlink.database import get_db
from numberlink.dependencies import require_company
from numberlink.schemas.vehicle import (PublicVehicleOut, RegionStat, VehicleCreate,
                                        VehicleListResponse, VehicleOut, VehicleTypeStat,
                                        VehicleUpdate)
from numberlink.services import disclosure_service, vehicle_service
from numberlink.services.security import Principal
from numberlink.services.vehicle_service import VehicleFilter

router = APIRouter()


@router.get("/vehicles", response_model=VehicleListResponse, summary="Available vehicles — filterable")
def list_vehicles(
    region: Optional[str] = None,
    vehicle_type: Optional[str] = None,
    tonnage: Optional[str] = None,
    year_model: Optional[int] = None,
    min_fee: Optional[int] = None,
    max_fee: Optional[int] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = disclosure_service.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db),
):
    vehicle_filter = VehicleFilter(region=region, vehicle_type=vehicle_type, tonnage=tonnage,
                                   year_model=year_model, min_fee=min_fee, max_fee=max_fee,
                                   search=search)
    return disclosure_service.list_vehicles(db, vehicle_filter, page, limit)


@router.get("/vehicles/stats/region", response_model=list[RegionStat], summary="Listings per region")
def region_stats(db: Session = Depends(get_db)):
    return vehicle_service.region_stats(db)


@router.get("/vehicles/stats/type", response_model=list[VehicleTypeStat], summary="Listings per vehicle type")
def vehicle_type_stats(db: Session = Depends(get_db)):
    return vehicle_service.vehicle_type_stats(db)


@router.get("/vehicles/my", response_model=list[VehicleOut], summary="Own company's vehicles")
def my_vehicles(principal: Principal = Depends(require_company), db: Session = Depends(get_db)):
    return vehicle_service.list_company_vehicles(db, principal.id)


@router.get("/vehicles/{vehicle_id}", response_model=PublicVehicleOut, summary="Vehicle detail")
def vehicle_detail(vehicle_id: int, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """The view counter is bumped after the response is sent."""
    detail = disclosure_service.get_vehicle_detail(db, vehicle_id)
    background_tasks.add_task(disclosure_service.record_vehicle_view, vehicle_id)
    return detail


@router.post("/vehicles", response_model=VehicleOut, status_code=201, summary="Register a vehicle")
def create_vehicle(body: VehicleCreate, principal: Principal = Depends(require_company),
                   db: Session = Depends(get_db)):
    return vehicle_service.create_vehicle(db, principal.id, body.model_dump())


@router.put("/vehicles/{vehicle_id}", response_model=VehicleOut, summary="Update own vehicle")
def update_vehicle(vehicle_id: int, body: VehicleUpdate, principal: Principal = Depends(require_company),
                   db: Session = Depends(get_db)):
    return vehicle_service.update_vehicle(db, principal.id, vehicle_id, body.model_dump(exclude_unset=True))


@router.delete("/vehicles/{vehicle_id}", summary="Delete own vehicle")
def delete_vehicle(vehicle_id: int, principal: Principal = Depends(require_company),
                   db: Session = Depends(get_db)):
    return vehicle_service.delete_vehicle(db, principal.id, vehicle_id)
