"""
Initial schema - all 8 tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Attributes
    op.create_table(
        "attributes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("is_param", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 2. Attribute Parameters
    op.create_table(
        "attribute_parameters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("attribute_id", sa.Integer, sa.ForeignKey("attributes.id"), nullable=False),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("attribute_id", "value", name="uq_attribute_parameter_value"),
    )

    # 3. Changeover Groups
    op.create_table(
        "changeover_groups",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 4. Changeover Times
    op.create_table(
        "changeover_times",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("changeover_group_id", sa.Integer, sa.ForeignKey("changeover_groups.id"), nullable=False),
        sa.Column("attribute_id", sa.Integer, sa.ForeignKey("attributes.id"), nullable=False),
        sa.Column("changeover_time", sa.Float, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("changeover_group_id", "attribute_id", name="uq_changeover_time_group_attr"),
        sa.CheckConstraint("changeover_time >= 0", name="ck_changeover_time_non_negative"),
    )

    # 5. Changeover Data
    op.create_table(
        "changeover_data",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("changeover_group_id", sa.Integer, sa.ForeignKey("changeover_groups.id"), nullable=False),
        sa.Column("attribute_id", sa.Integer, sa.ForeignKey("attributes.id"), nullable=False),
        sa.Column("from_attr_param_id", sa.Integer, sa.ForeignKey("attribute_parameters.id"), nullable=False),
        sa.Column("to_attr_param_id", sa.Integer, sa.ForeignKey("attribute_parameters.id"), nullable=False),
        sa.Column("setup_time", sa.Float, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "changeover_group_id",
            "attribute_id",
            "from_attr_param_id",
            "to_attr_param_id",
            name="uq_changeover_data_cell",
        ),
        sa.CheckConstraint("setup_time >= 0", name="ck_changeover_data_non_negative"),
    )
    op.create_index("ix_changeover_data_group_attr", "changeover_data", ["changeover_group_id", "attribute_id"])

    # 6. Optimization Scenarios
    op.create_table(
        "optimization_scenarios",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text),
        sa.Column("strategy", sa.String(100)),
        sa.Column("campaign_window_days", sa.Integer),
        sa.Column("gravity", sa.Boolean),
        sa.Column("resource_priority", sa.Text, nullable=False, server_default=""),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 7. Optimizer Settings (singleton, id = 1)
    op.create_table(
        "optimizer_settings",
        sa.Column("id", sa.Integer, primary_key=True, server_default="1"),
        sa.Column("strategy", sa.String(100), nullable=False, server_default="balanced"),
        sa.Column("campaign_window_days", sa.Integer, nullable=False, server_default="0"),
        sa.Column("gravity", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("resource_priority", sa.Text, nullable=False, server_default=""),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 8. Optimizer Executions
    op.create_table(
        "optimizer_executions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="RUNNING"),
        sa.Column("scenario_name", sa.String(255)),
        sa.Column("strategy", sa.String(100), nullable=False),
        sa.Column("campaign_window_days", sa.Integer, nullable=False, server_default="0"),
        sa.Column("gravity", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("resource_priority", sa.Text, nullable=False, server_default=""),
        sa.Column("start_time", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("end_time", sa.DateTime),
        sa.Column("duration_seconds", sa.Float),
        sa.Column("record_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text),
        sa.CheckConstraint("status IN ('RUNNING', 'SUCCESS', 'FAILED')", name="ck_optimizer_execution_status"),
    )
    op.create_index("ix_optimizer_executions_start_time", "optimizer_executions", ["start_time"])


def downgrade() -> None:
    tables = [
        "optimizer_executions",
        "optimizer_settings",
        "optimization_scenarios",
        "changeover_data",
        "changeover_times",
        "changeover_groups",
        "attribute_parameters",
        "attributes",
    ]
    for table in tables:
        op.drop_table(table)
