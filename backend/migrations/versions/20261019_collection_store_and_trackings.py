"""Collection store and tracking snapshots

Revision ID: 20261019_collections
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_collections"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "collection_blobs",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "trackings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tracking_token", sa.String(length=128), nullable=False),
        sa.Column("inventory", sa.JSON(), nullable=True),
        sa.Column("sales_orders", sa.JSON(), nullable=True),
        sa.Column("assignments", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("trackings", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_trackings_tracking_token"), ["tracking_token"], unique=True)


def downgrade():
    with op.batch_alter_table("trackings", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_trackings_tracking_token"))
    op.drop_table("trackings")
    op.drop_table("collection_blobs")
