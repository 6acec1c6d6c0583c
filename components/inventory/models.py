"""Stock movement model for the database."""

from sqlalchemy import Column, Integer, String, Date, Numeric

from components.core.database import Base


class StockMovement(Base):
    """Inventory movement of a product, in or out."""
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    type = Column(String(10), nullable=False)  # in or out
    quantity = Column(Numeric(10, 3), nullable=False)
    unit_cost = Column(Numeric(10, 2), nullable=True)
    movement_date = Column(Date, nullable=False)
    description = Column(String(255), nullable=True)
