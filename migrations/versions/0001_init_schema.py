"""init schema: verification + adopsiak_orders

Revision ID: 0001_init
Revises:
Create Date: 2026-10-12

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "verification",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("identifier", sa.Text(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_verification"),
        sa.UniqueConstraint("identifier", name="uq_verification_identifier"),
    )
    op.create_index("ix_verification_expires_at", "verification", ["expires_at"], unique=False)

    op.create_table(
        "adopsiak_orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("city_or_municipality", sa.Text(), nullable=False),
        sa.Column("shipping_address", sa.Text(), nullable=False),
        sa.Column("delegate_name", sa.Text(), nullable=False),
        sa.Column("delegate_phone1", sa.Text(), nullable=False),
        sa.Column("delegate_phone2", sa.Text(), nullable=True),
        sa.Column("libraries_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("kindergartens_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_institutions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("delivery_date", sa.Text(), nullable=True),
        sa.Column("protocol_text", sa.Text(), nullable=True),
        sa.Column("protocol_email_recipient", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_adopsiak_orders"),
        sa.CheckConstraint("libraries_count >= 0", name="ck_adopsiak_orders_adopsiak_orders_libraries_nonneg"),
        sa.CheckConstraint("kindergartens_count >= 0", name="ck_adopsiak_orders_adopsiak_orders_kindergartens_nonneg"),
        sa.CheckConstraint("total_institutions >= 0", name="ck_adopsiak_orders_adopsiak_orders_total_nonneg"),
    )
    op.create_index(
        "ix_adopsiak_orders_email_created", "adopsiak_orders", ["email", "created_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_adopsiak_orders_email_created", table_name="adopsiak_orders")
    op.drop_table("adopsiak_orders")
    op.drop_index("ix_verification_expires_at", table_name="verification")
    op.drop_table("verification")
