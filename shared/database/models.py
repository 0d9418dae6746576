"""Modelos SQLAlchemy del ticket store y del ledger de escaneos"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, Index, Uuid, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid
from shared.database.connection import Base


class ScanResult(str, enum.Enum):
    """Resultado de un intento de escaneo"""
    VALID = "VALID"
    WRONG_EVENT = "WRONG_EVENT"
    ALREADY_SCANNED = "ALREADY_SCANNED"
    EXPIRED = "EXPIRED"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, server_default="user")  # user, scanner, coordinator, admin
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    orders = relationship("Order", back_populates="buyer")
    scans = relationship("TicketScan", back_populates="scanner")


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    start_date_time = Column(DateTime(timezone=True), nullable=False)
    end_date_time = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    orders = relationship("Order", back_populates="event")


class Order(Base):
    """Ticket comprado. Lo crea el flujo de pago externo cuando la orden queda pagada."""
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    quantity = Column(Integer, nullable=False, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    event = relationship("Event", back_populates="orders")
    buyer = relationship("User", back_populates="orders")
    scans = relationship("TicketScan", back_populates="order", order_by="TicketScan.scanned_at")


class TicketScan(Base):
    """
    Intento de escaneo (append-only).

    Nunca se actualiza ni se elimina: es el audit trail de la puerta.
    El índice único parcial garantiza a nivel de storage como máximo
    una admisión válida por (ticket, evento).
    """
    __tablename__ = "ticket_scans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)  # Evento donde se escaneó
    scanner_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    is_valid = Column(Boolean, nullable=False, default=False)
    scan_result = Column(
        Enum(ScanResult, name="scan_result", native_enum=False, length=20, validate_strings=True),
        nullable=False
    )
    notes = Column(Text, nullable=True)
    scanned_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relaciones
    order = relationship("Order", back_populates="scans")
    scanner = relationship("User", back_populates="scans")

    __table_args__ = (
        Index(
            "uq_ticket_scans_valid_admission",
            "order_id",
            "event_id",
            unique=True,
            postgresql_where=is_valid,
            sqlite_where=is_valid,
        ),
        Index("ix_ticket_scans_event_scanned_at", "event_id", "scanned_at"),
        Index("ix_ticket_scans_order_id", "order_id"),
    )
