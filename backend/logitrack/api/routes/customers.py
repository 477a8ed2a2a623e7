"""Customer routes"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from logitrack.core.database import get_db
from logitrack.schemas.customer import CustomerCreate, CustomerResponse, CustomerUpdate
from logitrack.schemas.response import APIResponse, PaginatedResponse, Pagination
from logitrack.services.customer_service import customer_service
from logitrack.api.deps import get_current_admin_user, get_current_manager_user, get_current_user
from logitrack.models.user import User

router = APIRouter()


@router.get("", response_model=PaginatedResponse)
def get_customers(
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List customers

    Args:
        search: Matches name, email, company or customer code
        is_active: Optional status filter
    """
    customers, total = customer_service.list_customers(db, search, is_active, page, limit)
    return PaginatedResponse(
        message="Customers retrieved successfully",
        data=[CustomerResponse.model_validate(c) for c in customers],
        pagination=Pagination(total=total, page=page, limit=limit, pages=(total + limit - 1) // limit),
    )


@router.post("", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    data: CustomerCreate,
    current_user: User = Depends(get_current_manager_user),
    db: Session = Depends(get_db)
):
    """Create a customer (admin, manager)"""
    customer = customer_service.create_customer(db, data, current_user)
    return APIResponse(message="Customer created successfully", data=CustomerResponse.model_validate(customer))


@router.get("/{customer_id}", response_model=APIResponse)
def get_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    customer = customer_service.get_customer(db, customer_id)
    return APIResponse(message="Customer retrieved successfully", data=CustomerResponse.model_validate(customer))


@router.put("/{customer_id}", response_model=APIResponse)
def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    current_user: User = Depends(get_current_manager_user),
    db: Session = Depends(get_db)
):
    """Update a customer (admin, manager)"""
    customer = customer_service.update_customer(db, customer_id, data)
    return APIResponse(message="Customer updated successfully", data=CustomerResponse.model_validate(customer))


@router.delete("/{customer_id}", response_model=APIResponse)
def delete_customer(
    customer_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Delete a customer (admin only)"""
    customer_service.delete_customer(db, customer_id)
    return APIResponse(message="Customer deleted successfully")
