# scripts/init_database.py

"""
Database initialization script.
This script creates all CRM tables (principals, leads, contacts, meetings, deals,
action items and the security audit log).
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app
from crm_app.models import Principal, db


def init_database():
    with app.app_context():
        print("Creating database tables...")
        db.create_all()
        print("Database tables created")

        principal_count = db.session.query(Principal).count()
        print(f"\nDatabase initialization complete! ({principal_count} principals)")

        print("\nNext steps:")
        print("  1. Create an admin principal: python scripts/create_admin.py")
        print("  2. Import a CSV: flask importer import-csv leads --file leads.csv --principal <id>")


if __name__ == "__main__":
    init_database()
