import os
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

# Database models and setup
from database import SessionLocal, init_db
from models.users import User, UserRole
from models.store import Store
from models.product import Product
from models.order import Order, OrderItem, OrderSequence
from models.stock import StockMovement
from models.log import Log
from services.stores import slugify
from utils.hashing import get_password_hash

# Configuration
DEMO_PASSWORD = "password123"

USERS = [
    ("business1@demo-shop.com", "Business One", UserRole.BUSINESS),
    ("business2@demo-shop.com", "Business Two", UserRole.BUSINESS),
    ("customer1@demo-shop.com", "Customer One", UserRole.CUSTOMER),
    ("customer2@demo-shop.com", "Customer Two", UserRole.CUSTOMER),
]

# owner email -> [(store name, description, [(product, description, price, stock)])]
CATALOG = {
    "business1@demo-shop.com": [
        ("Digital Electronics", "Technology and gadgets", [
            ("Gaming Laptop Pro", "High-end gaming laptop", "1299.99", 10),
            ("RGB Wireless Mouse", "Gaming mouse with RGB lighting", "59.99", 25),
            ("Mechanical Keyboard", "Mechanical keyboard with blue switches", "89.99", 15),
        ]),
        ("Home Office", "Desks, chairs and accessories", [
            ("Ergonomic Chair", "Adjustable office chair", "249.00", 5),
            ("Standing Desk", "Electric height-adjustable desk", "499.00", 3),
        ]),
    ],
    "business2@demo-shop.com": [
        ("Urban Coffee", "Specialty coffee and brewing gear", [
            ("Ethiopian Beans 1kg", "Light roast, single origin", "24.50", 40),
            ("Pour-over Kit", "Dripper, filters and kettle", "74.90", 8),
        ]),
    ],
}
# End Configuration


def reset(session):
    """Remove existing marketplace data, children first."""
    for model in (Log, StockMovement, OrderItem, Order, OrderSequence, Product, Store, User):
        session.query(model).delete()
    session.commit()


def populate():
    init_db()
    session = SessionLocal()
    try:
        reset(session)

        password_hash = get_password_hash(DEMO_PASSWORD)
        users = {}
        for email, name, role in USERS:
            users[email] = User(email=email, name=name, role=role, password_hash=password_hash)
            session.add(users[email])
        session.flush()

        product_count = 0
        for owner_email, stores in CATALOG.items():
            for store_name, description, products in stores:
                store = Store(
                    name=store_name, description=description, slug=slugify(store_name),
                    business_id=users[owner_email].id, is_active=True,
                )
                session.add(store)
                session.flush()
                for name, product_description, price, stock in products:
                    session.add(Product(
                        name=name, description=product_description, price=Decimal(price),
                        stock=stock, store_id=store.id, is_active=True,
                    ))
                    product_count += 1

        session.commit()
        print(f"Seeded {len(users)} users, {sum(len(s) for s in CATALOG.values())} stores, {product_count} products.")
        print(f"Demo password for every account: {DEMO_PASSWORD}")
    except Exception as e:
        session.rollback()
        print(f"Seeding failed: {e}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    populate()
