"""Customer service"""

from typing import List, Optional, Tuple
import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from logitrack.core.exceptions import ResourceNotFoundError
from logitrack.models.customer import Customer
from logitrack.models.user import User
from logitrack.schemas.customer import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)


class CustomerService:
    """CRUD for customers"""

    @staticmethod
    def _next_code(db: Session) -> str:
        last_id = db.query(func.max(Customer.id)).scalar() or 0
        return f"CUST{last_id + 1:06d}"

    @staticmethod
    def list_customers(
        db: Session,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Customer], int]:
        query = db.query(Customer)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Customer.name.ilike(pattern),
                    Customer.email.ilike(pattern),
                    Customer.company_name.ilike(pattern),
                    Customer.customer_code.ilike(pattern),
                )
            )
        if is_active is not None:
            query = query.filter(Customer.is_active.is_(is_active))

        total = query.count()
        customers = (
            query.order_by(Customer.created_at.desc(), Customer.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return customers, total

    @staticmethod
    def get_customer(db: Session, customer_id: int) -> Customer:
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise ResourceNotFoundError("Customer")
        return customer

    @staticmethod
    def create_customer(db: Session, data: CustomerCreate, created_by: User) -> Customer:
        customer = Customer(
            customer_code=CustomerService._next_code(db),
            created_by_id=created_by.id,
            **data.model_dump(),
        )
        db.add(customer)
        db.commit()
        db.refresh(customer)
        logger.info(f"Customer {customer.customer_code} created by user {created_by.id}")
        return customer

    @staticmethod
    def update_customer(db: Session, customer_id: int, data: CustomerUpdate) -> Customer:
        customer = CustomerService.get_customer(db, customer_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "is_active" and value is None:
                continue
            setattr(customer, field, value)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def delete_customer(db: Session, customer_id: int) -> None:
        customer = CustomerService.get_customer(db, customer_id)
        db.delete(customer)
        db.commit()
        logger.info(f"Customer {customer.customer_code} deleted")


customer_service = CustomerService()
