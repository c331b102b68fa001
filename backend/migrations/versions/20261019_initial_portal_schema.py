"""Initial supplier portal schema

Revision ID: 20261019_portal_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_portal_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="user"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('admin', 'user', 'viewer')", name="ck_users_role"),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_users_status"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_email", ["email"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_is_revoked", ["is_revoked"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("trade_name", sa.String(255), nullable=True),
        sa.Column("cnpj", sa.String(14), nullable=False),
        sa.Column("person_type", sa.String(1), nullable=False, server_default="J"),
        sa.Column("state_registration", sa.String(64), nullable=True),
        sa.Column("state_registration_type", sa.String(1), nullable=True),
        sa.Column("municipal_registration", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("submitted_by", sa.String(255), nullable=True),
        sa.Column("address", sa.JSON(), nullable=False),
        sa.Column("bank_data", sa.JSON(), nullable=False),
        sa.Column("uploaded_documents", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="under_review"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(255), nullable=True),
        sa.Column("approved_by_name", sa.String(255), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("sienge_creditor_id", sa.String(64), nullable=True),
        sa.Column("sent_to_sienge_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sienge_integration_status", sa.String(16), nullable=True),
        sa.Column("sienge_integration_error", sa.JSON(), nullable=True),
        sa.Column("sienge_response", sa.JSON(), nullable=True),
        sa.Column("integration_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint(
            "status IN ('pending', 'under_review', 'approved', 'rejected', 'integration_error')",
            name="ck_suppliers_status",
        ),
        sa.CheckConstraint(
            "NOT (approved_at IS NOT NULL AND rejection_reason IS NOT NULL)",
            name="ck_suppliers_approval_xor_rejection",
        ),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("suppliers", schema=None) as batch_op:
        batch_op.create_index("ix_suppliers_cnpj", ["cnpj"], unique=True)
        batch_op.create_index("ix_suppliers_status", ["status"], unique=False)
        batch_op.create_index("ix_suppliers_submitted_by", ["submitted_by"], unique=False)
        batch_op.create_index("ix_suppliers_sienge_creditor_id", ["sienge_creditor_id"], unique=False)
        batch_op.create_index("ix_suppliers_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "registration_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("cnpj", sa.String(14), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("registration_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_registration_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_registration_tokens_cnpj", ["cnpj"], unique=False)


def downgrade():
    with op.batch_alter_table("registration_tokens", schema=None) as batch_op:
        batch_op.drop_index("ix_registration_tokens_cnpj")
        batch_op.drop_index("ix_registration_tokens_token_hash")
    op.drop_table("registration_tokens")

    with op.batch_alter_table("suppliers", schema=None) as batch_op:
        batch_op.drop_index("ix_suppliers_status_created")
        batch_op.drop_index("ix_suppliers_sienge_creditor_id")
        batch_op.drop_index("ix_suppliers_submitted_by")
        batch_op.drop_index("ix_suppliers_status")
        batch_op.drop_index("ix_suppliers_cnpj")
    op.drop_table("suppliers")

    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.drop_index("ix_session_tokens_user_active")
        batch_op.drop_index("ix_session_tokens_is_revoked")
        batch_op.drop_index("ix_session_tokens_expires_at")
        batch_op.drop_index("ix_session_tokens_token_hash")
        batch_op.drop_index("ix_session_tokens_user_id")
    op.drop_table("session_tokens")

    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_index("ix_users_email")
    op.drop_table("users")
