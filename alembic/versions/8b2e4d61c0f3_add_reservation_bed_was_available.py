"""Add reservation_beds.was_available

Revision ID: 8b2e4d61c0f3
Revises: 3f1c2a9d7b10
Create Date: 2026-10-19 15:40:07.902114

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "8b2e4d61c0f3"
down_revision = "3f1c2a9d7b10"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column("reservation_beds", sa.Column("was_available", sa.Boolean(), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column("reservation_beds", "was_available")
