from datetime import datetime

from flask_login import UserMixin

from classifieds.extensions import db


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False, default="")
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    phone = db.Column(db.String(32), unique=True, index=True, nullable=True)
    profile_image_url = db.Column(db.String(1024), nullable=True)

    # Doubles as the ad owner type (user, dealer, admin, ...).
    role = db.Column(db.String(32), nullable=False, default="user")
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def owner_type(self) -> str:
        return (self.role or "user").strip().lower()

    def to_summary(self) -> dict:
        return {
            "id": int(self.id),
            "name": self.name or "",
            "email": self.email,
            "phone": getattr(self, "phone", None),
            "profileImageUrl": (getattr(self, "profile_image_url", None) or ""),
            "role": self.owner_type,
            "isVerified": bool(self.is_verified),
        }
