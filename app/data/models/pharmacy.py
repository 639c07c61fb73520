from sqlalchemy import Column, Integer, String
from app.data.database import Base

class PharmacyModel(Base):
    __tablename__ = "pharmacies"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=True)
