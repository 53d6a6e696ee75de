from classifieds.extensions import db
from classifieds.models.vehicle_ad import VehicleFieldsMixin


class CommercialVehicleAd(VehicleFieldsMixin, db.Model):
    __tablename__ = "commercial_vehicle_ads"

    ad_id = db.Column(db.Integer, db.ForeignKey("ads.id", ondelete="CASCADE"), primary_key=True)

    commercial_vehicle_type = db.Column(db.String(40), nullable=True, index=True)
    body_type = db.Column(db.String(40), nullable=True)
    payload_capacity = db.Column(db.Float, nullable=True)
    payload_unit = db.Column(db.String(16), nullable=True)
    axle_count = db.Column(db.Integer, nullable=True)
    has_fitness = db.Column(db.Boolean, nullable=False, default=False)
    has_permit = db.Column(db.Boolean, nullable=False, default=False)
    seating_capacity = db.Column(db.Integer, nullable=True)

    ad = db.relationship("Ad", back_populates="commercial_vehicle_details")

    def to_dict(self) -> dict:
        data = self.vehicle_dict()
        data.update(
            {
                "commercialVehicleType": self.commercial_vehicle_type,
                "bodyType": self.body_type,
                "payloadCapacity": float(self.payload_capacity) if self.payload_capacity is not None else None,
                "payloadUnit": self.payload_unit,
                "axleCount": int(self.axle_count) if self.axle_count is not None else None,
                "hasFitness": bool(self.has_fitness),
                "hasPermit": bool(self.has_permit),
                "seatingCapacity": int(self.seating_capacity) if self.seating_capacity is not None else None,
            }
        )
        return data
