#!/usr/bin/env python3
"""
Database bootstrap script
Creates the tables and makes sure the default staff accounts exist.
Safe to run more than once.
"""
import os
import sys

# Add the app directory to the path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from sqlmodel import Session, select

from app.config import settings
from app.database import create_db_and_tables, engine
from app.models import User
from app.utils import create_jwt_token

DEFAULT_STAFF = [
    {"first_name": "Admin", "last_name": "Clinica", "email": "admin@clinic.local", "role": "admin"},
    {"first_name": "Recepcion", "last_name": "Clinica", "email": "recepcion@clinic.local", "role": "receptionist"},
    {"first_name": "Ana", "last_name": "Garcia", "email": "ana.garcia@clinic.local", "role": "doctor", "specialization": "Oftalmología General"},
    {"first_name": "Luis", "last_name": "Martinez", "email": "luis.martinez@clinic.local", "role": "doctor", "specialization": "Neuro-Oftalmología"},
]

def seed_database():
    """
    Create tables and insert missing staff accounts
    """
    print("Creating tables...")
    create_db_and_tables()

    created = []
    with Session(engine) as session:
        for account in DEFAULT_STAFF:
            existing = session.exec(select(User).where(User.email == account["email"])).first()
            if existing:
                print(f"  {account['email']} already exists ({existing.role})")
                continue
            user = User(**account)
            session.add(user)
            created.append(user)
        session.commit()
        for user in created:
            session.refresh(user)
            print(f"  created {user.email} ({user.role}) id={user.id}")

        if not settings.jwt_configured:
            print("JWT_SECRET_KEY is not set; skipping token output")
            return

        print("Access tokens (valid 24h):")
        for user in session.exec(select(User).where(User.is_active == True)).all():  # noqa: E712
            token = create_jwt_token({"sub": user.id, "role": user.role})
            print(f"  {user.email}: {token}")

if __name__ == "__main__":
    try:
        seed_database()
        print("Seeding completed successfully!")
    except Exception as e:
        print(f"Seeding failed: {e}")
        sys.exit(1)
