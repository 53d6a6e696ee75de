from datetime import datetime
import json

from classifieds.extensions import db


class VehicleFieldsMixin:
    """Columns shared by private and commercial vehicle records.

    Inventory references (manufacturer, model, variant, transmission, fuel)
    are ids owned by the external inventory service, stored as strings.
    """

    vehicle_type = db.Column(db.String(32), nullable=False)
    manufacturer_id = db.Column(db.String(64), nullable=False, index=True)
    model_id = db.Column(db.String(64), nullable=False, index=True)
    variant_id = db.Column(db.String(64), nullable=True)
    year = db.Column(db.Integer, nullable=True, index=True)
    mileage = db.Column(db.Integer, nullable=True)
    transmission_type_id = db.Column(db.String(64), nullable=True, index=True)
    fuel_type_id = db.Column(db.String(64), nullable=True, index=True)
    color = db.Column(db.String(40), nullable=True)
    is_first_owner = db.Column(db.Boolean, nullable=False, default=False)
    has_insurance = db.Column(db.Boolean, nullable=False, default=False)
    has_rc_book = db.Column(db.Boolean, nullable=False, default=False)
    additional_features_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def additional_features(self) -> list[str]:
        try:
            parsed = json.loads(self.additional_features_json or "[]")
        except Exception:
            return []
        return [str(item) for item in parsed] if isinstance(parsed, list) else []

    def inventory_refs(self) -> dict:
        return {
            "manufacturer": self.manufacturer_id,
            "model": self.model_id,
            "variant": self.variant_id,
            "transmissionType": self.transmission_type_id,
            "fuelType": self.fuel_type_id,
        }

    def vehicle_dict(self) -> dict:
        return {
            "vehicleType": self.vehicle_type,
            "manufacturerId": self.manufacturer_id,
            "modelId": self.model_id,
            "variantId": self.variant_id,
            "year": int(self.year) if self.year is not None else None,
            "mileage": int(self.mileage) if self.mileage is not None else None,
            "transmissionTypeId": self.transmission_type_id,
            "fuelTypeId": self.fuel_type_id,
            "color": self.color,
            "isFirstOwner": bool(self.is_first_owner),
            "hasInsurance": bool(self.has_insurance),
            "hasRcBook": bool(self.has_rc_book),
            "additionalFeatures": self.additional_features,
        }


class VehicleAd(VehicleFieldsMixin, db.Model):
    __tablename__ = "vehicle_ads"

    ad_id = db.Column(db.Integer, db.ForeignKey("ads.id", ondelete="CASCADE"), primary_key=True)

    ad = db.relationship("Ad", back_populates="vehicle_details")

    def to_dict(self) -> dict:
        return self.vehicle_dict()
