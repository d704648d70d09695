"""
Initialize database — creates the access_events table.
Run once before first launch, or after changing models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from app.database import create_tables, engine
from app.config import settings


def main():
    print("🗄️  Access Ledger DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {engine.url.render_as_string(hide_password=True)}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nCheck DATABASE_URL in .env and that the server is running.")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()

    tables = inspect(engine).get_table_names()
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn app.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT}")


if __name__ == "__main__":
    main()
