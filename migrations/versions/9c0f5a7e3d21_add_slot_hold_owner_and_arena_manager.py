"""add slot hold owner and arena manager

Revision ID: 9c0f5a7e3d21
Revises: 4b8e2d1f0a93
Create Date: 2026-09-16 14:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "9c0f5a7e3d21"
down_revision = "4b8e2d1f0a93"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("time_slots", schema=None) as batch_op:
        batch_op.add_column(sa.Column("lock_token", sa.String(length=64), nullable=True))
        batch_op.add_column(sa.Column("locked_by_user_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key("fk_time_slots_locked_by_user_id", "users", ["locked_by_user_id"], ["id"])

    with op.batch_alter_table("bookings", schema=None) as batch_op:
        batch_op.add_column(sa.Column("lock_token", sa.String(length=64), nullable=True))
        batch_op.add_column(sa.Column("lock_expires_at", sa.DateTime(), nullable=True))

    with op.batch_alter_table("arenas", schema=None) as batch_op:
        batch_op.add_column(sa.Column("manager_user_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key("fk_arenas_manager_user_id", "users", ["manager_user_id"], ["id"])
        batch_op.create_index(batch_op.f("ix_arenas_manager_user_id"), ["manager_user_id"], unique=False)


def downgrade():
    with op.batch_alter_table("arenas", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_arenas_manager_user_id"))
        batch_op.drop_constraint("fk_arenas_manager_user_id", type_="foreignkey")
        batch_op.drop_column("manager_user_id")

    with op.batch_alter_table("bookings", schema=None) as batch_op:
        batch_op.drop_column("lock_expires_at")
        batch_op.drop_column("lock_token")

    with op.batch_alter_table("time_slots", schema=None) as batch_op:
        batch_op.drop_constraint("fk_time_slots_locked_by_user_id", type_="foreignkey")
        batch_op.drop_column("locked_by_user_id")
        batch_op.drop_column("lock_token")
