from sqlalchemy.orm import Session
from shop.data.models.user import UserModel
from shop.domain.errors import NotFound, ValidationError
from shop.repos.user_repo import UserRepo
from shop.domain.schemas import UserCreate


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserModel:
        existing = self.repo.get_user(payload.id)
        if existing:
            return existing

        email = payload.email.strip().lower() if payload.email else None
        if email and self.repo.get_by_email(email):
            raise ValidationError("Email already registered")

        user = UserModel(id=payload.id, name=payload.name, email=email, role=payload.role)
        return self.repo.create_user(user)

    def get_user(self, user_id: int) -> UserModel:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def require_admin(self, user_id: int) -> UserModel:
        user = self.get_user(user_id)
        if not user.is_admin:
            raise PermissionError("Admin access required")
        return user
