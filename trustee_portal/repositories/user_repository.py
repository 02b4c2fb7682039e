from sqlalchemy.orm import Session
from trustee_portal.models.user import User


class UserRepository:
    """Repository for User model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create_by_auth_id(self, auth_user_id: str, email: str | None = None) -> User:
        """
        Get user by auth_user_id or create if doesn't exist.

        Called by the request gate on every authenticated request. The stored
        email follows the token's 'email' claim.

        Args:
            auth_user_id: User ID from JWT 'sub' claim
            email: Lower-cased email claim, if the token carries one

        Returns:
            User object (either existing or newly created)
        """
        user = self.db.query(User).filter(User.auth_user_id == auth_user_id).first()

        # An email already claimed by another principal is not reassigned
        if email and self.get_by_email(email) not in (None, user):
            email = None

        if not user:
            user = User(auth_user_id=auth_user_id, email=email)
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        elif email and user.email != email:
            user.email = email
            self.db.commit()
            self.db.refresh(user)

        return user

    def get_by_email(self, email: str) -> User | None:
        """Get user by lower-cased email"""
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def get_by_id(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)
