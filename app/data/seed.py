# app/data/seed.py
from decimal import Decimal

from app.data.database import Base, SessionLocal, engine
from app.data.models import PharmacyModel, ProductModel, UserModel
from app.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    ("Paracetamol 500mg", "pain relief", Decimal("4.99"), 120, False),
    ("Ibuprofen 200mg", "pain relief", Decimal("6.49"), 8, False),
    ("Amoxicillin 250mg", "antibiotics", Decimal("12.90"), 30, True),
    ("Vitamin D3 2000IU", "supplements", Decimal("9.99"), 0, False),
]


def seed():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(PharmacyModel).first():
            return

        pharmacy = PharmacyModel(name="Central Pharmacy", location="Main Street 1")
        db.add(pharmacy)
        db.add(UserModel(id=1, name="Demo User"))
        db.flush()

        for name, category, price, stock, prescription in DEMO_PRODUCTS:
            db.add(
                ProductModel(
                    pharmacy_id=pharmacy.id,
                    name=name,
                    category=category,
                    price=price,
                    stock_quantity=stock,
                    is_prescription_required=prescription,
                )
            )
        db.commit()
        logger.info(f"Seeded pharmacy {pharmacy.id} with {len(DEMO_PRODUCTS)} products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
