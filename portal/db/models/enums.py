import enum


class BusinessUnit(str, enum.Enum):
    G3 = "G3"
    PRINTERS_UAE = "PrintersUAE"
    IT = "IT"


class Role(str, enum.Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class LeaveType(str, enum.Enum):
    ANNUAL = "Annual"
    SICK_WITH_CERTIFICATE = "SickWithCertificate"
    SICK_WITHOUT_CERTIFICATE = "SickWithoutCertificate"


class LeaveUnit(str, enum.Enum):
    FULL_DAY = "FullDay"
    HALF_DAY = "HalfDay"


class RequestStatus(str, enum.Enum):
    """Shared by leave and overtime requests."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class PayrollStatus(str, enum.Enum):
    GENERATED = "Generated"
    PENDING_SIGNATURE = "Pending Signature"
    REJECTED = "Rejected"
    SIGNED = "Signed"
    COMPLETED = "Completed"


class AssetDateStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    RESOLVED = "resolved"


class AssetCategory(str, enum.Enum):
    VEHICLES = "vehicles"
    REGISTRATIONS = "registrations"
    RENTAL_MACHINES = "rental_machines"
    IT_EQUIPMENT = "it_equipment"
