from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


USER_ROLES = ("admin", "user", "viewer")
USER_STATUSES = ("active", "inactive")


class User(db.Model):
    """
    Staff accounts (admins, reviewers, read-only viewers).

    Email is the login identifier and is globally unique. Accounts are
    created by an admin only; deactivation is a soft toggle on `status`.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'user', 'viewer')", name="ck_users_role"),
        db.CheckConstraint("status IN ('active', 'inactive')", name="ck_users_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default="user")
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    # Email of the admin who created the account ("cli" for bootstrap accounts)
    created_by = db.Column(db.String(255), nullable=True)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer sessions for staff.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - Revocable on logout, deactivation or deletion of the user
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship(
        "User",
        backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan", passive_deletes=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
