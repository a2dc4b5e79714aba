# create_admin.py

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from app import app
from crm_app.models import Principal, db


def create_admin():
    with app.app_context():
        display_name = input("Enter display name: ").strip()
        full_name = input("Enter full name: ").strip()
        email = input("Enter email: ").strip()

        if not display_name:
            print("Error: Display name cannot be empty.")
            sys.exit(1)

        if email and db.session.query(Principal).filter_by(email=email).first():
            print("Error: Email already exists.")
            sys.exit(1)

        admin = Principal(
            display_name=display_name,
            full_name=full_name or None,
            email=email or None,
            is_admin=True,
        )
        try:
            db.session.add(admin)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            print(f"Error creating admin principal: {exc}")
            sys.exit(1)

        print("✅ Admin principal created successfully!")
        print(f"   ID: {admin.id}")
        print(f"   Display name: {admin.display_name}")
        print(f"   Email: {admin.email}")
        print("\nUse the ID with --principal or IMPORTER_DEFAULT_PRINCIPAL_ID so imports are attributed to it.")


if __name__ == "__main__":
    create_admin()
