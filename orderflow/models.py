"""
SQLAlchemy Database Models

The SQL backend stores each order as a JSON document. A few fields are
copied into indexed columns so lookups by phone and newest-first listing
do not scan documents.
"""

from sqlalchemy import Column, String, DateTime, JSON

from orderflow.database import Base


class OrderRecord(Base):
    """One order document plus its query columns."""
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True)

    # =========================================================================
    # QUERY COLUMNS (mirrors of document fields)
    # =========================================================================
    customer_phone = Column(String(30), nullable=False, index=True)
    customer_phone_digits = Column(String(30), nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)

    # =========================================================================
    # DOCUMENT
    # =========================================================================
    document = Column(JSON, nullable=False)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<OrderRecord {self.id} - {self.customer_phone} - {self.status}>"
