"""Table definitions for the school resources served by the generic record store."""

from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String, Text, func
from school_admin.database import Base


class _Timestamped:
    id = Column(String(36), primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class Student(_Timestamped, Base):
    __tablename__ = "students"

    admission_number = Column(String(30), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    class_name = Column(String(50))
    guardian_name = Column(String(255))
    guardian_phone = Column(String(30))
    status = Column(String(20), server_default="active")


class Fee(_Timestamped, Base):
    __tablename__ = "fees"

    student_id = Column(String(36), nullable=False, index=True)
    term = Column(String(30))
    amount = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), server_default="0")
    payment_method = Column(String(30))
    reference = Column(String(100))
    status = Column(String(20), server_default="pending")
    due_date = Column(Date)


class StaffMember(_Timestamped, Base):
    __tablename__ = "staff"

    staff_number = Column(String(30), unique=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    position = Column(String(100))
    department = Column(String(100))
    email = Column(String(255))
    phone = Column(String(30))
    status = Column(String(20), server_default="active")


class PayrollEntry(_Timestamped, Base):
    __tablename__ = "payroll"

    staff_id = Column(String(36), nullable=False, index=True)
    period = Column(String(7), nullable=False)  # YYYY-MM
    basic_salary = Column(Numeric(12, 2), nullable=False)
    allowances = Column(Numeric(12, 2), server_default="0")
    deductions = Column(Numeric(12, 2), server_default="0")
    net_salary = Column(Numeric(12, 2))
    status = Column(String(20), server_default="draft")


class ProcurementRequest(_Timestamped, Base):
    __tablename__ = "procurement"

    item_name = Column(String(255), nullable=False)
    supplier = Column(String(255))
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(12, 2))
    total_cost = Column(Numeric(12, 2))
    status = Column(String(20), server_default="requested")
    requested_by = Column(String(36))


class InventoryItem(_Timestamped, Base):
    __tablename__ = "inventory"

    item_name = Column(String(255), nullable=False)
    category = Column(String(100))
    quantity = Column(Integer, nullable=False, server_default="0")
    unit = Column(String(30))
    reorder_level = Column(Integer, server_default="0")
    location = Column(String(100))


class Setting(_Timestamped, Base):
    __tablename__ = "settings"

    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text)
    description = Column(Text)
