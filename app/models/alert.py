import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class AlertType(str, PyEnum):
    LOW_STOCK = "low_stock"
    EXPIRY = "expiry"
    ORDER_UPDATE = "order_update"
    SYSTEM = "system"


class AlertSeverity(str, PyEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    alert_type: Mapped[AlertType] = mapped_column(
        Enum(AlertType, values_callable=lambda x: [e.value for e in x], validate_strings=True),
        nullable=False,
    )
    product_id: Mapped[str | None] = mapped_column(String, ForeignKey("products.id", ondelete="CASCADE"), nullable=True)
    variant_id: Mapped[str | None] = mapped_column(String, ForeignKey("product_variants.id"), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String, ForeignKey("batches.id"), nullable=True)
    location_id: Mapped[str | None] = mapped_column(String, ForeignKey("locations.id"), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, values_callable=lambda x: [e.value for e in x], validate_strings=True),
        default=AlertSeverity.INFO,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)

    product: Mapped[Optional["Product"]] = relationship("Product")  # noqa: F821
    variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")  # noqa: F821
    location: Mapped[Optional["Location"]] = relationship("Location")  # noqa: F821
