"""create document tables

Revision ID: 5a1f3c2e9b7d
Revises:
Create Date: 2026-03-02 09:15:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5a1f3c2e9b7d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "document_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("original_file_name", sa.String(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("stored_file_path", sa.String(), nullable=False),
        sa.Column("file_hash", sa.String(), nullable=False),
        sa.Column("hash_algorithm", sa.String(), nullable=False),
        sa.Column("verification_code", sa.String(), nullable=False),
        sa.Column("barcode_value", sa.String(), nullable=False),
        sa.Column("issued_for", sa.String(), nullable=True),
        sa.Column("issuer_id", sa.String(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("downloads", sa.Integer(), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_document_records_id", "document_records", ["id"], unique=False)
    op.create_index("ix_document_records_file_hash", "document_records", ["file_hash"], unique=True)
    op.create_index(
        "ix_document_records_verification_code", "document_records", ["verification_code"], unique=True
    )
    op.create_index("ix_document_records_issuer_id", "document_records", ["issuer_id"], unique=False)
    op.create_index("ix_document_records_status", "document_records", ["status"], unique=False)

    op.create_table(
        "document_share_tokens",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("document_id", sa.String(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_downloads", sa.Integer(), nullable=True),
        sa.Column("download_count", sa.Integer(), nullable=False),
        sa.Column("created_by_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_document_share_tokens_id", "document_share_tokens", ["id"], unique=False)
    op.create_index(
        "ix_document_share_tokens_document_id", "document_share_tokens", ["document_id"], unique=False
    )
    op.create_index("ix_document_share_tokens_token", "document_share_tokens", ["token"], unique=True)

    op.create_table(
        "document_verification_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_id", sa.String(), nullable=False),
        sa.Column("verifier_id", sa.String(), nullable=True),
        sa.Column("verifier_name", sa.String(), nullable=True),
        sa.Column("verifier_email", sa.String(), nullable=True),
        sa.Column("verifier_role", sa.String(), nullable=True),
        sa.Column("submitted_hash", sa.String(), nullable=False),
        sa.Column("matched", sa.Boolean(), nullable=False),
        sa.Column("verified_via", sa.String(), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document_records.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_document_verification_logs_id", "document_verification_logs", ["id"], unique=False)
    op.create_index(
        "ix_document_verification_logs_document_id", "document_verification_logs", ["document_id"], unique=False
    )
    op.create_index(
        "ix_document_verification_logs_verifier_id", "document_verification_logs", ["verifier_id"], unique=False
    )
    op.create_index(
        "ix_document_verification_logs_submitted_hash",
        "document_verification_logs",
        ["submitted_hash"],
        unique=False,
    )
    op.create_index(
        "ix_document_verification_logs_matched", "document_verification_logs", ["matched"], unique=False
    )
    op.create_index(
        "ix_document_verification_logs_created_at", "document_verification_logs", ["created_at"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("document_verification_logs")
    op.drop_table("document_share_tokens")
    op.drop_index("ix_document_records_status", table_name="document_records")
    op.drop_index("ix_document_records_issuer_id", table_name="document_records")
    op.drop_index("ix_document_records_verification_code", table_name="document_records")
    op.drop_index("ix_document_records_file_hash", table_name="document_records")
    op.drop_index("ix_document_records_id", table_name="document_records")
    op.drop_table("document_records")
