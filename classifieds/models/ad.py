from datetime import datetime
import json

import sqlalchemy as sa

from classifieds.extensions import db


class AdCategory:
    PROPERTY = "property"
    PRIVATE_VEHICLE = "private_vehicle"
    COMMERCIAL_VEHICLE = "commercial_vehicle"
    TWO_WHEELER = "two_wheeler"

    ALL = (PROPERTY, PRIVATE_VEHICLE, COMMERCIAL_VEHICLE, TWO_WHEELER)
    VEHICLES = (PRIVATE_VEHICLE, COMMERCIAL_VEHICLE, TWO_WHEELER)

    # Category -> create payload key carrying its subtype fields.
    PAYLOAD_KEYS = {
        PROPERTY: "property",
        PRIVATE_VEHICLE: "vehicle",
        TWO_WHEELER: "vehicle",
        COMMERCIAL_VEHICLE: "commercial",
    }


class Ad(db.Model):
    __tablename__ = "ads"
    __table_args__ = (
        db.Index("ix_ads_visibility", "is_active", "is_approved", "is_deleted"),
        db.Index("ix_ads_category_location", "category", "location"),
        db.Index("ix_ads_coordinates", "latitude", "longitude"),
    )

    id = db.Column(db.Integer, primary_key=True)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    owner_type = db.Column(db.String(32), nullable=False, default="user", server_default="user")

    category = db.Column(db.String(32), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False, default="")
    description = db.Column(db.Text, nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0, index=True)

    # JSON list of image URLs.
    images_json = db.Column(db.Text, nullable=True)
    link = db.Column(db.String(1024), nullable=True)

    location = db.Column(db.String(255), nullable=False, default="")
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=sa.text("true"))
    is_approved = db.Column(db.Boolean, nullable=False, default=False, server_default=sa.text("false"))
    sold_out = db.Column(db.Boolean, nullable=False, default=False, server_default=sa.text("false"))
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=sa.text("false"))

    view_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = db.relationship("User", lazy="joined")
    property_details = db.relationship("PropertyAd", uselist=False, back_populates="ad")
    vehicle_details = db.relationship("VehicleAd", uselist=False, back_populates="ad")
    commercial_vehicle_details = db.relationship("CommercialVehicleAd", uselist=False, back_populates="ad")

    @property
    def images(self) -> list[str]:
        if not self.images_json:
            return []
        try:
            parsed = json.loads(self.images_json)
        except Exception:
            return []
        return [str(item) for item in parsed] if isinstance(parsed, list) else []

    @images.setter
    def images(self, value) -> None:
        self.images_json = json.dumps(list(value or []))

    @property
    def geo_point(self) -> dict | None:
        if self.latitude is None or self.longitude is None:
            return None
        return {"type": "Point", "coordinates": [float(self.longitude), float(self.latitude)]}

    @property
    def subtype(self):
        return self.property_details or self.vehicle_details or self.commercial_vehicle_details

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "title": self.title or "",
            "description": self.description or "",
            "price": float(self.price or 0.0),
            "images": self.images,
            "link": self.link,
            "location": self.location or "",
            "latitude": float(self.latitude) if self.latitude is not None else None,
            "longitude": float(self.longitude) if self.longitude is not None else None,
            "geoPoint": self.geo_point,
            "category": self.category,
            "isActive": bool(self.is_active),
            "isApproved": bool(self.is_approved),
            "soldOut": bool(self.sold_out),
            "isDeleted": bool(self.is_deleted),
            "viewCount": int(self.view_count or 0),
            "ownerType": self.owner_type or "user",
            "postedAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
