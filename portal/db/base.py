
from portal.db.base_class import Base

# Import models here so create_all finds them
from portal.db.models.user import User
from portal.db.models.activity import ActivityLog
from portal.db.models.leave import LeaveRequest
from portal.db.models.overtime import OvertimeRequest
from portal.db.models.payroll import Payroll
from portal.db.models.assets import Vehicle, CompanyRegistration, RentalMachine, ITEquipment, AssetDate, AssetReminder
from portal.db.models.notification import EmployeeNotification, AdminNotification
