from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class RegistrationToken(db.Model):
    """
    Single-use, time-boxed credential gating the public registration form.

    Anti-abuse measure rather than a security boundary. Only the SHA-256 of
    the token is stored; the plaintext is handed out once at issuance.
    """
    __tablename__ = "registration_tokens"
    __table_args__ = (
        db.Index("ix_registration_tokens_cnpj", "cnpj"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cnpj = db.Column(db.String(14), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(255), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cnpj": self.cnpj,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "expires_at": to_utc_z(self.expires_at),
            "used": self.used,
            "used_at": to_utc_z(self.used_at),
        }
