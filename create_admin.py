#!/usr/bin/env python3
"""
Script to bootstrap administrator accounts for the delivery backend.
Public registration cannot create admins, so the first one comes from here.
Usage: python create_admin.py
"""

import getpass

from database.connection import SessionLocal, create_tables
from services.auth import create_user, get_user_by_email
from core.validators import validate_password_strength
from core.exceptions import ConflictError
from models.user import User, UserRole

def create_admin_user():
    """Create an admin user interactively"""
    print("🔧 Delivery Backend Admin User Creation")
    print("=" * 40)

    create_tables()
    db = SessionLocal()

    try:
        print("📧 Enter admin details:")
        email = input("Email: ").strip()

        existing_user = get_user_by_email(db, email)
        if existing_user:
            print(f"❌ User with email {email} already exists!")
            if existing_user.role == UserRole.ADMIN:
                print("✅ This user is already an admin.")
            else:
                print(f"ℹ️  This user exists with role: {existing_user.role.value}")
            return

        password = getpass.getpass("Password: ")
        is_valid, errors = validate_password_strength(password)
        if not is_valid:
            for error in errors:
                print(f"❌ {error}")
            return

        name = input("Name: ").strip()
        if len(name) < 2:
            print("❌ Name must be at least 2 characters long!")
            return

        print("\n🔨 Creating admin user...")
        user = create_user(db=db, email=email, password=password, name=name, role=UserRole.ADMIN)

        print("✅ Admin user created successfully!")
        print(f"📧 Email: {user.email}")
        print(f"👤 Name: {user.name}")
        print(f"🔑 Role: {user.role.value}")
        print(f"🆔 ID: {user.id}")

    except ConflictError as e:
        print(f"❌ {e.message}")
    finally:
        db.close()

def list_admin_users():
    """List all admin users"""
    print("👥 Current Admin Users")
    print("=" * 40)

    db = SessionLocal()
    try:
        admins = db.query(User).filter(User.role == UserRole.ADMIN).all()
        if not admins:
            print("No admin users found.")
            return

        for admin in admins:
            print(f"📧 {admin.email}")
            print(f"👤 {admin.name}")
            print(f"📅 Created: {admin.created_at}")
            print("-" * 30)
    finally:
        db.close()

def main():
    print("🚀 Delivery Backend Admin Management")
    print("=" * 40)
    print("1. Create Admin User")
    print("2. List Admin Users")
    print("3. Exit")

    while True:
        choice = input("\nSelect option (1-3): ").strip()

        if choice == "1":
            create_admin_user()
            break
        elif choice == "2":
            list_admin_users()
            break
        elif choice == "3":
            print("👋 Goodbye!")
            break
        else:
            print("❌ Invalid choice. Please select 1, 2, or 3.")

if __name__ == "__main__":
    main()
