import sys
import os

sys.path.append(os.getcwd())

from portal.db.session import SessionLocal, engine
from portal.db.base import Base
from portal.db.models.enums import BusinessUnit, Role
from portal.db.models.user import User
from portal.core.security import get_password_hash

SEED_USERS = [
    # username, password, full name, role, email, payroll day
    ("admin", "admin123", "Admin User", Role.ADMIN, "admin@example.com", None),
    ("employee", "employee123", "Test Employee", Role.EMPLOYEE, "employee@example.com", 28),
]

def create_initial_data(business_unit: str = BusinessUnit.G3.value):
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        for username, password, full_name, role, email, payroll_day in SEED_USERS:
            if db.query(User).filter(User.username == username).first():
                print(f"User '{username}' already exists.")
                continue

            print(f"Creating {role.value} user '{username}' in {business_unit}...")
            db.add(User(
                username=username,
                hashed_password=get_password_hash(password),
                full_name=full_name,
                email=email,
                role=role.value,
                business_unit=business_unit,
                payroll_day=payroll_day,
            ))
            db.commit()
            print(f"User '{username}' created.")
    finally:
        db.close()

if __name__ == "__main__":
    create_initial_data(*sys.argv[1:2])
