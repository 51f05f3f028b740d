# modules/employees/models.py
import datetime
import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from database.base import Base


class Supervisor(str, enum.Enum):
    KO_KAUNG_SAN_PHOE = "Ko Kaung San Phoe"
    KO_KYAW_SWA_WIN = "Ko Kyaw Swa Win"
    DIMPLE = "Dimple"
    BUDIMAN = "Budiman"

    @classmethod
    def names(cls) -> list[str]:
        return [m.value for m in cls]


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    education = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    supervisor = Column(String(50), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    phones = relationship(
        "EmployeePhone",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmployeePhone.id",
    )
    leave = relationship(
        "LeaveLedger",
        back_populates="employee",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def phone_numbers(self) -> list[str]:
        return [p.number for p in self.phones]


class EmployeePhone(Base):
    __tablename__ = "employee_phone_numbers"

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    # every number is unique across all employees
    number = Column(String(32), unique=True, nullable=False)

    employee = relationship("Employee", back_populates="phones")
