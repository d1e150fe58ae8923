"""
Database Models
SQLAlchemy ORM models for PillWatch
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum

from config import TableNames, settings
from database import Base


# ==================== ENUMS ====================

class DoseType(str, PyEnum):
    """Which of the two daily doses an event refers to"""
    MORNING = "morning"
    EVENING = "evening"


class DoseStatus(str, PyEnum):
    """Outcome recorded by the patient device"""
    TAKEN = "taken"
    MISSED = "missed"


class DeviceStatus(str, PyEnum):
    """Connectivity of the patient's dispenser/app"""
    ONLINE = "online"
    OFFLINE = "offline"


# ==================== MODELS ====================

class PatientSettings(Base):
    """Caregiver-configured dose schedule and pill inventory for one patient"""
    __tablename__ = TableNames.PATIENTS

    patient_id = Column(String(32), primary_key=True, index=True)
    account_uid = Column(String(128), index=True)  # Auth account of the patient

    # Schedule ("HH:MM", local to `timezone`)
    morning_dose_time = Column(String(5))
    evening_dose_time = Column(String(5))
    timezone = Column(String(64), default=settings.DEFAULT_TIMEZONE, nullable=False)

    # Inventory
    morning_pill_count = Column(Integer, default=0, nullable=False)
    evening_pill_count = Column(Integer, default=0, nullable=False)

    # Caregiver contact
    caregiver_email = Column(String(255), index=True)
    caregiver_uid = Column(String(128), index=True)

    # Device
    device_status = Column(Enum(DeviceStatus), default=DeviceStatus.OFFLINE, nullable=False)
    last_sync = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String(50), default="caregiver")
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dose_logs = relationship("DoseLog", back_populates="patient", cascade="all, delete-orphan")

    @property
    def is_configured(self) -> bool:
        return bool(self.morning_dose_time or self.evening_dose_time)


class DoseLog(Base):
    """Append-only record of a dose being taken or missed"""
    __tablename__ = TableNames.DOSE_LOGS

    id = Column(String(36), primary_key=True)
    patient_id = Column(String(32), ForeignKey(f"{TableNames.PATIENTS}.patient_id"), nullable=False)

    dose_type = Column(Enum(DoseType), nullable=False)
    status = Column(Enum(DoseStatus), nullable=False)
    delay_seconds = Column(Integer, default=0, nullable=False)

    # `timestamp` is authoritative; `created_at` is the client-observed fallback
    timestamp = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("PatientSettings", back_populates="dose_logs")

    __table_args__ = (
        Index("ix_dose_logs_patient_time", "patient_id", "timestamp"),
    )
