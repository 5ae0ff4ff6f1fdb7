import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class MovementType(str, PyEnum):
    IN = "in"
    OUT = "out"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    CONSUMPTION = "consumption"


class InventoryMovement(Base):
    """Append-only ledger of every stock change."""

    __tablename__ = "inventory_movements"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    movement_type: Mapped[MovementType] = mapped_column(
        Enum(MovementType, values_callable=lambda x: [e.value for e in x], validate_strings=True),
        nullable=False,
    )
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id: Mapped[str | None] = mapped_column(String, ForeignKey("product_variants.id"), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String, ForeignKey("batches.id"), nullable=True)
    source_location_id: Mapped[str | None] = mapped_column(String, ForeignKey("locations.id"), nullable=True, index=True)
    destination_location_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("locations.id"), nullable=True, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    moved_by: Mapped[str] = mapped_column(String, ForeignKey("profiles.id"), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)

    product: Mapped["Product"] = relationship("Product")  # noqa: F821
    variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")  # noqa: F821
    source_location: Mapped[Optional["Location"]] = relationship(  # noqa: F821
        "Location", foreign_keys=[source_location_id]
    )
    destination_location: Mapped[Optional["Location"]] = relationship(  # noqa: F821
        "Location", foreign_keys=[destination_location_id]
    )
    moved_by_user: Mapped["Profile"] = relationship("Profile")  # noqa: F821
