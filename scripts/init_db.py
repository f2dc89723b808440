#!/usr/bin/env python3
"""Initialize database with tables"""

from botglue.database import init_db as create_tables

def init_db():
    """Create all tables"""
    print("Creating database tables...")
    create_tables()
    print("✓ Database tables created successfully!")

if __name__ == "__main__":
    init_db()
