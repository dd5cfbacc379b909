"""
Seed initial bundle tiers and the admin user.

This script seeds:
- Bundle tiers (Basic, Pro, Enterprise)
- Admin user (free tier quota, admin role)

Run this after migrations are complete. Safe to run again: existing rows are
updated in place.
"""
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.database import SessionLocal
from app.models.bundle_tier import BundleTier
from app.models.user import User
from app.services.user import create_user


BUNDLE_TIERS = [
    {
        "name": "Basic",
        "description": "10 messages per billing period",
        "max_messages": 10,
        "price_monthly": Decimal("0.00"),
        "price_yearly": Decimal("0.00"),
    },
    {
        "name": "Pro",
        "description": "100 messages per billing period",
        "max_messages": 100,
        "price_monthly": Decimal("29.00"),
        "price_yearly": Decimal("290.00"),
    },
    {
        "name": "Enterprise",
        "description": "Unlimited messages",
        "max_messages": -1,  # Unlimited
        "price_monthly": Decimal("99.00"),
        "price_yearly": Decimal("990.00"),
    },
]


def seed_bundle_tiers(db):
    """Seed bundle tiers."""
    for data in BUNDLE_TIERS:
        tier = db.query(BundleTier).filter(BundleTier.name == data["name"]).first()
        if tier:
            for key, value in data.items():
                setattr(tier, key, value)
            tier.is_active = True
            print(f"✅ Updated bundle tier: {data['name']} (messages: {data['max_messages']})")
        else:
            db.add(BundleTier(is_active=True, **data))
            print(f"✅ Created bundle tier: {data['name']} (messages: {data['max_messages']})")
    db.commit()


def seed_admin_user(db, email: str):
    """Seed the admin user."""
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        print(f"Admin user {email} already exists, skipping...")
        return
    create_user(db, email, full_name="Admin User", role="admin")
    print(f"✅ Admin user created: {email}")


def main():
    import argparse
    parser = argparse.ArgumentParser(description='Seed bundle tiers and admin user')
    parser.add_argument('--admin-email', default='admin@test.com', help='Admin email')
    args = parser.parse_args()

    db = SessionLocal()
    try:
        seed_bundle_tiers(db)
        seed_admin_user(db, args.admin_email)
        print("✅ Seeding complete")
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
