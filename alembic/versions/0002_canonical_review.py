"""Keep the canonical reader's review notes and evidence on extractions."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0002_canonical_review"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("extractions") as batch:
        batch.add_column(sa.Column("review_notes", sa.Text(), nullable=True))
        batch.add_column(sa.Column("evidence", sa.JSON(none_as_null=True), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("extractions") as batch:
        batch.drop_column("evidence")
        batch.drop_column("review_notes")
