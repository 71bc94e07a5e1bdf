# app/models/user.py

from sqlalchemy import CheckConstraint, Column, Date, Integer, String, Boolean, DateTime, func

from app.core.roles import Role
from app.db.session import Base

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    utorid = Column(String(8), unique=True, index=True, nullable=False)
    name = Column(String(50), nullable=False)
    email = Column(String, unique=True, nullable=False)
    birthday = Column(Date, nullable=True)

    # 'regular', 'cashier', 'manager', 'superuser'
    role = Column(String(20), default=Role.REGULAR.value, nullable=False, server_default=Role.REGULAR.value)

    points = Column(Integer, default=0, nullable=False, server_default='0')
    verified = Column(Boolean, default=False, nullable=False, server_default='false')
    # Only meaningful for cashiers: their purchases are recorded but withheld
    suspicious = Column(Boolean, default=False, nullable=False, server_default='false')

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    last_login = Column(DateTime, nullable=True)
