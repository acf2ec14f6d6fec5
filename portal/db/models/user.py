from sqlalchemy import Column, Integer, String, Boolean
from portal.db.base_class import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(100))
    email = Column(String(100), nullable=True)
    role = Column(String(20), default="employee") # admin, employee
    business_unit = Column(String(20), nullable=False, index=True) # G3, PrintersUAE, IT
    is_active = Column(Boolean, default=True)

    # Day of month payroll is paid on (1-31), used to default Payroll.payroll_date
    payroll_day = Column(Integer, nullable=True)

    @property
    def display_name(self):
        return self.full_name or self.username
