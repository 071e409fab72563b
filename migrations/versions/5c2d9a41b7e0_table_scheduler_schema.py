"""table scheduler schema

Revision ID: 5c2d9a41b7e0
Revises: 
Create Date: 2026-10-19 09:12:44.318207

"""
from pathlib import Path
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '5c2d9a41b7e0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    project_root = Path(__file__).resolve().parents[2]
    sql_dir = project_root / "sql"

    for filename in ("001_extensions.sql", "010_schema.sql"):
        op.execute((sql_dir / filename).read_text())


def downgrade() -> None:
    op.drop_table("reservation", schema="public")
    op.drop_table("cancellation_policy", schema="public")
    op.drop_table("special_period", schema="public")
    op.drop_table("turn_time_rule", schema="public")
    op.drop_table("operating_hours", schema="public")
    op.drop_table("dining_table", schema="public")
    op.drop_table("restaurant", schema="public")
    op.execute("DROP EXTENSION IF EXISTS pgcrypto;")
