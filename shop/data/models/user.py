from sqlalchemy import Column, Integer, String
from shop.data.database import Base

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_CUSTOMER)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
