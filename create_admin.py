#!/usr/bin/env python3
"""
Create (or reset) the admin user that approves caddies and liquidates payments.
"""
import os

from dotenv import load_dotenv

from cadiapp import models
from cadiapp.auth import get_password_hash
from cadiapp.database import Base, SessionLocal, engine

load_dotenv()

# Configuration
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@cadiapp.com").strip().lower()
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "Admin123!@#")  # Change this!
ADMIN_FIRST_NAME = os.getenv("ADMIN_FIRST_NAME", "Admin")
ADMIN_LAST_NAME = os.getenv("ADMIN_LAST_NAME", "CadiApp")


def main() -> None:
    print("=" * 60)
    print("Creating Admin User")
    print("=" * 60)
    print(f"Email: {ADMIN_EMAIL}")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == ADMIN_EMAIL).first()
        if user:
            user.password = get_password_hash(ADMIN_PASSWORD)
            user.role = models.UserRole.admin
            print("Existing user found: password reset and role set to admin.")
        else:
            db.add(models.User(
                email=ADMIN_EMAIL,
                password=get_password_hash(ADMIN_PASSWORD),
                role=models.UserRole.admin,
                first_name=ADMIN_FIRST_NAME,
                last_name=ADMIN_LAST_NAME,
            ))
        db.commit()
        print("OK: Admin user ready.")
    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
