"""
Enumerations shared by models and schemas.
"""

from enum import Enum


class RecordStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SchoolStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"
    TRANSFERRED = "transferred"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AcademicRecordStatus(str, Enum):
    ACTIVE = "active"
    PROMOTED = "promoted"
    TRANSFERRED = "transferred"
    COMPLETED = "completed"


class FeeCategoryType(str, Enum):
    SCHOOL = "school"
    TRANSPORT = "transport"


class FeeFrequency(str, Enum):
    ONE_TIME = "one_time"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class StudentFeeStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class GenerationType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class GenerationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class InvoiceType(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONE_TIME = "one_time"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceSourceType(str, Enum):
    FEE = "FEE"
    TRANSPORT = "TRANSPORT"
    HOSTEL = "HOSTEL"
    FINE = "FINE"
    MISC = "MISC"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    ONLINE = "online"
    CHEQUE = "cheque"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
