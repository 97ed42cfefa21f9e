"""Add tags.name_key for case-insensitive tag lookup

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

The key is the casefolded tag name, computed in Python. Matching on the
database's lower() misses non-ASCII capitals on SQLite ("Ý tưởng").
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("tags", sa.Column("name_key", sa.String(length=255), nullable=True))

    # Backfill existing rows
    bind = op.get_bind()
    tags = sa.table("tags", sa.column("id", sa.String), sa.column("name", sa.String), sa.column("name_key", sa.String))
    for tag_id, name in bind.execute(sa.select(tags.c.id, tags.c.name)).all():
        bind.execute(tags.update().where(tags.c.id == tag_id).values(name_key=name.strip().casefold()))

    with op.batch_alter_table("tags") as batch_op:
        batch_op.alter_column("name_key", existing_type=sa.String(length=255), nullable=False)
        batch_op.create_unique_constraint("uq_tags_name_key", ["name_key"])


def downgrade() -> None:
    with op.batch_alter_table("tags") as batch_op:
        batch_op.drop_constraint("uq_tags_name_key", type_="unique")
        batch_op.drop_column("name_key")
