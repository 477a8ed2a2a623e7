"""
Check the PostgreSQL database for Logitrack.
Run once before migrating: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER logitrack WITH PASSWORD 'logitrack';
  CREATE DATABASE logitrack_db OWNER logitrack;
  GRANT ALL PRIVILEGES ON DATABASE logitrack_db TO logitrack;
  \q

Then apply the schema: alembic upgrade head
"""

import sys

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from logitrack.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("DATABASE_URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print(f"  psql -U postgres -c \"CREATE USER {settings.POSTGRES_USER} WITH PASSWORD '***';\"")
        print(f"  psql -U postgres -c \"CREATE DATABASE {settings.POSTGRES_DB} OWNER {settings.POSTGRES_USER};\"")
        print(
            f"  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE {settings.POSTGRES_DB} "
            f"TO {settings.POSTGRES_USER};\""
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
