import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker

from storefront.core.clock import utcnow
from storefront.database import Base
from storefront.models.catalog import Product
from storefront.models.customer import Customer
from storefront.models.discount import Discount, DiscountUsage
from storefront.models.order import Order
from storefront.schemas.cart import CartItem
from storefront.schemas.order import OrderCreate
from storefront.services.customer_service import CustomerService
from storefront.services.order_service import OrderService

WORKERS = 8


@pytest.fixture
def session_factory(tmp_path):
    """File-backed SQLite, one connection per thread, like a real deployment."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'storefront.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def lamp(session_factory):
    db = session_factory()
    product = Product(store_id=1, name="Lamp", price=1000, image_urls=[])
    db.add(product)
    db.commit()
    product_id = product.id
    db.close()
    return product_id


def run_concurrently(session_factory, count, task):
    """Run ``task(db)`` in ``count`` threads released at the same moment,
    each with its own session."""
    barrier = threading.Barrier(count)

    def worker(_):
        db = session_factory()
        try:
            barrier.wait()
            return task(db)
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(worker, range(count)))


def order_for(product_id, phone="+77010000000"):
    return OrderCreate(
        items=[CartItem(product_id=product_id, quantity=1)],
        customer_name="Aida",
        customer_phone=phone,
    )


def test_concurrent_placements_get_consecutive_numbers(session_factory, lamp):
    numbers = run_concurrently(
        session_factory,
        WORKERS,
        lambda db: OrderService.place_order(db, 1, order_for(lamp))[0].order_number,
    )
    assert sorted(numbers) == list(range(1, WORKERS + 1))


def test_concurrent_placements_continue_existing_counter(session_factory, lamp):
    db = session_factory()
    OrderService.place_order(db, 1, order_for(lamp))
    db.close()

    numbers = run_concurrently(
        session_factory,
        WORKERS,
        lambda db: OrderService.place_order(db, 1, order_for(lamp))[0].order_number,
    )
    assert sorted(numbers) == list(range(2, WORKERS + 2))


def test_concurrent_placements_respect_usage_cap(session_factory, lamp):
    db = session_factory()
    discount = Discount(
        store_id=1, title="Launch", type="automatic", value_type="fixed", value=100,
        max_total_uses=3, start_date=utcnow() - timedelta(hours=1),
    )
    db.add(discount)
    db.commit()
    discount_id = discount.id
    db.close()

    totals = run_concurrently(
        session_factory,
        WORKERS,
        lambda db: OrderService.place_order(db, 1, order_for(lamp))[0].total,
    )
    assert sorted(totals) == [900] * 3 + [1000] * (WORKERS - 3)

    db = session_factory()
    assert db.query(DiscountUsage).filter(DiscountUsage.discount_id == discount_id).count() == 3
    customer = db.query(Customer).filter(Customer.store_id == 1).one()
    assert customer.total_orders == WORKERS
    assert customer.total_spent == db.query(func.sum(Order.total)).scalar() == sum(totals)
    db.close()


def test_concurrent_customer_updates_are_not_lost(session_factory):
    db = session_factory()
    CustomerService.upsert_from_order(db, 1, "Aida", "+7700", 100, utcnow())
    db.close()

    run_concurrently(
        session_factory,
        6,
        lambda db: CustomerService.upsert_from_order(db, 1, "Aida", "+7700", 100, utcnow()).id,
    )

    db = session_factory()
    customer = db.query(Customer).filter(Customer.store_id == 1, Customer.phone == "+7700").one()
    assert customer.total_orders == 7
    assert customer.total_spent == 700
    db.close()


def test_concurrent_first_orders_create_one_customer(session_factory):
    run_concurrently(
        session_factory,
        4,
        lambda db: CustomerService.upsert_from_order(db, 1, "Aida", "+7711", 250, utcnow()).id,
    )

    db = session_factory()
    customers = db.query(Customer).filter(Customer.phone == "+7711").all()
    assert len(customers) == 1
    assert customers[0].total_orders == 4
    assert customers[0].total_spent == 1000
    db.close()
