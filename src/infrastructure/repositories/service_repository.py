# src/infrastructure/repositories/service_repository.py

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select

from src.infrastructure.db.models import Customer, Service


class ServiceRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, service_id: int) -> Service | None:
        stmt = (
            select(Service)
            .where(Service.id == service_id)
            .options(selectinload(Service.provider))
        )
        return self.db.execute(stmt).scalar_one_or_none()


class CustomerRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: int) -> Customer | None:
        stmt = select(Customer).where(Customer.id == customer_id)
        return self.db.execute(stmt).scalar_one_or_none()
