from decimal import Decimal

from sqlalchemy import select

from src.api.deps import create_access_token
from src.domain.actors import ActorRole
from src.infrastructure.db.models import Base, Customer, Service, ServiceProvider
from src.infrastructure.db.session import engine, get_db_session


def seed_providers(db) -> dict[str, ServiceProvider]:
    provider_defs = [
        {"name": "Sparkle Home Cleaning", "email": "sparkle@example.com", "service_type": "CLEANING"},
        {"name": "Fixit Plumbing", "email": "fixit@example.com", "service_type": "PLUMBING"},
    ]

    providers = {}
    for item in provider_defs:
        provider = db.execute(
            select(ServiceProvider).where(ServiceProvider.email == item["email"])
        ).scalar_one_or_none()
        if provider:
            provider.name = item["name"]
            provider.service_type = item["service_type"]
        else:
            provider = ServiceProvider(**item)
            db.add(provider)
            db.flush()
        providers[item["email"]] = provider
    return providers


def seed_services(db, providers: dict[str, ServiceProvider]) -> None:
    service_defs = [
        {
            "name": "Deep Apartment Clean",
            "category": "CLEANING",
            "price": Decimal("80.00"),
            "provider": "sparkle@example.com",
        },
        {
            "name": "Window Washing",
            "category": "CLEANING",
            "price": Decimal("45.50"),
            "provider": "sparkle@example.com",
        },
        {
            "name": "Leak Repair",
            "category": "PLUMBING",
            "price": Decimal("120.00"),
            "provider": "fixit@example.com",
        },
    ]

    for item in service_defs:
        provider = providers[item["provider"]]
        existing = db.execute(
            select(Service)
            .where(Service.name == item["name"])
            .where(Service.provider_id == provider.id)
        ).scalar_one_or_none()
        if existing:
            existing.price = item["price"]
            existing.category = item["category"]
            continue

        db.add(
            Service(
                name=item["name"],
                category=item["category"],
                price=item["price"],
                provider_id=provider.id,
            )
        )


def seed_customer(db) -> Customer:
    email = "customer@example.com"
    customer = db.execute(
        select(Customer).where(Customer.email == email)
    ).scalar_one_or_none()
    if not customer:
        customer = Customer(name="Demo Customer", email=email)
        db.add(customer)
        db.flush()
    return customer


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        providers = seed_providers(db)
        seed_services(db, providers)
        customer = seed_customer(db)
        db.flush()

        print("Seed complete: 2 providers, 3 services, 1 customer added.")
        print(
            "Customer token:",
            create_access_token(customer.id, customer.email, ActorRole.CUSTOMER),
        )
        for provider in providers.values():
            print(
                f"Provider token ({provider.email}):",
                create_access_token(provider.id, provider.email, ActorRole.PROVIDER),
            )


if __name__ == "__main__":
    main()
