"""add_sale_item_state

Revision ID: 7c4e1a9b2f53
Revises: 3b1f9c2d7e40
Create Date: 2026-10-25 10:30:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "7c4e1a9b2f53"
down_revision: Union[str, None] = "3b1f9c2d7e40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Keep the sold item's own condition and status so a sale can be undone."""
    op.add_column("sales", sa.Column("item_condition", sa.String(length=20), nullable=True))
    op.add_column("sales", sa.Column("item_status", sa.String(length=20), nullable=True))


def downgrade() -> None:
    op.drop_column("sales", "item_status")
    op.drop_column("sales", "item_condition")
