from __future__ import annotations

from ..extensions import db
from casebook.time_utils import to_utc_z


class Setting(db.Model):
    """
    Key/value application settings (visit limits, display names).

    Values are stored as text and typed on read by settings_service.
    Writes are upserts keyed by setting_key.
    """
    __tablename__ = "settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(128), nullable=False, unique=True, index=True)
    setting_value = db.Column(db.Text, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "setting_key": self.setting_key,
            "setting_value": self.setting_value,
            "updated_at": to_utc_z(self.updated_at),
        }
