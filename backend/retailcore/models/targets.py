from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class MonthlyTarget(db.Model):
    """
    Weekly sales targets and incentive rates for one month.

    weeks = {
        "week1": {
            "overall_target_cents": 500000,
            "staff": {"S1": {"target_cents": 100000, "incentive_percentage": 0.5}},
        },
        ...
    }

    Read-mostly configuration; window dates are always derived from the
    month (see incentive_service.week_windows), never stored.
    """
    __tablename__ = "monthly_targets"

    month = db.Column(db.String(7), primary_key=True)
    weeks = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "weeks": self.weeks or {},
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
