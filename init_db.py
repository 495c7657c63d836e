# =============================================================================
# 🧩 init_db.py
# -----------------------------------------------------------------------------
# Initialises the database for the property item QR service:
#   - creates all tables (properties, items, qr_codes, qr_scans)
#   - seeds a demo property with one item (skipped when already present)
# =============================================================================

import os

from database import Base, engine, SessionLocal
from models import Item, Property

DEMO_USER_ID = os.getenv("DEMO_USER_ID", "demo-user")


def init_db() -> None:
    # 🔹 step 1 – tables
    print("🛠️ Creating tables...")
    Base.metadata.create_all(bind=engine)
    print("✅ Tables created.\n")

    # 🔹 step 2 – demo data
    db = SessionLocal()
    try:
        print("📦 Seeding demo property...")
        prop = db.query(Property).filter(Property.user_id == DEMO_USER_ID).first()
        if prop is None:
            prop = Property(
                user_id=DEMO_USER_ID,
                name="Demo Apartment",
                address="1 Example Street",
                property_type="residential",
            )
            db.add(prop)
            db.flush()
            db.add(
                Item(
                    property_id=prop.id,
                    name="Living room TV",
                    description="55 inch, wall mounted",
                    location="Living room",
                )
            )
            db.commit()
            print(f"  ➕ Property '{prop.name}' with one item added for {DEMO_USER_ID}.")
        else:
            print(f"  ✔️ Property '{prop.name}' already present.")
    finally:
        db.close()

    print("\n🎉 Database initialisation finished!")


if __name__ == "__main__":
    init_db()
