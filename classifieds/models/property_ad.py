from datetime import datetime
import json

from classifieds.extensions import db


class PropertyAd(db.Model):
    __tablename__ = "property_ads"

    # Keyed by the ad id so an ad can never carry two property records.
    ad_id = db.Column(db.Integer, db.ForeignKey("ads.id", ondelete="CASCADE"), primary_key=True)

    property_type = db.Column(db.String(32), nullable=False, index=True)
    bedrooms = db.Column(db.Integer, nullable=True, index=True)
    bathrooms = db.Column(db.Integer, nullable=True)
    area_sqft = db.Column(db.Float, nullable=True, index=True)
    floor = db.Column(db.Integer, nullable=True)
    is_furnished = db.Column(db.Boolean, nullable=False, default=False)
    has_parking = db.Column(db.Boolean, nullable=False, default=False)
    has_garden = db.Column(db.Boolean, nullable=False, default=False)
    amenities_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    ad = db.relationship("Ad", back_populates="property_details")

    @property
    def amenities(self) -> list[str]:
        try:
            parsed = json.loads(self.amenities_json or "[]")
        except Exception:
            return []
        return [str(item) for item in parsed] if isinstance(parsed, list) else []

    def to_dict(self) -> dict:
        return {
            "propertyType": self.property_type,
            "bedrooms": int(self.bedrooms) if self.bedrooms is not None else None,
            "bathrooms": int(self.bathrooms) if self.bathrooms is not None else None,
            "areaSqft": float(self.area_sqft) if self.area_sqft is not None else None,
            "floor": int(self.floor) if self.floor is not None else None,
            "isFurnished": bool(self.is_furnished),
            "hasParking": bool(self.has_parking),
            "hasGarden": bool(self.has_garden),
            "amenities": self.amenities,
        }
