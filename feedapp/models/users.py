from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from . import Base

DEFAULT_STATUS = 'I am new!'

class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(150), nullable=False)
    status = Column(String(255), nullable=False, default=DEFAULT_STATUS)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # owned-post set: every post whose creator_id points here
    posts = relationship('Post', back_populates='creator', passive_deletes=True)
