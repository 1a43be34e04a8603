"""
Database initialization script.
Creates the posts, profiles and price check usage tables.
"""
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from src.models.base import Base
# Import all models to register them
from src.models.posts import Post
from src.models.profiles import Profile
from src.models.price_check_usage import PriceCheckUsage
from config.settings import get_settings

def init_database():
    """
    Initialize database with all tables.
    Steps:
    1. Create all tables from SQLAlchemy models
    2. List the tables now present
    """
    settings = get_settings()
    engine = create_engine(settings.DATABASE_URL)

    print("Stock Calls - Database Initialization")
    print("=" * 50)

    print("\n1. Creating all tables...")
    try:
        Base.metadata.create_all(bind=engine)
        print("  ✓ All tables created")
    except SQLAlchemyError as e:
        print(f"  ✗ Error creating tables: {e}")
        return

    print("\n2. Verifying tables...")
    tables = sorted(inspect(engine).get_table_names())
    print(f"  ✓ Found {len(tables)} tables:")
    for table in tables:
        print(f"    - {table}")

    print("\n" + "=" * 50)
    print("Database initialization complete!")
    print("\nNext steps:")
    print("1. Access API: http://localhost:8000")
    print("2. Trigger a check: POST /posts/check-prices")

if __name__ == "__main__":
    init_database()
