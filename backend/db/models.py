"""
OptiPlan Database Models

8 tables for changeover modelling and optimizer run orchestration.

Tables:
  Attributes (1-2):
  1. attributes               - Production properties (color, material, ...)
  2. attribute_parameters     - Enumerated values of parameterized attributes

  Changeover Matrix (3-5):
  3. changeover_groups        - Machine families sharing one setup-time matrix
  4. changeover_times         - Baseline changeover per (group, attribute)
  5. changeover_data          - Matrix cells per (group, attribute, from, to)

  Optimizer (6-8):
  6. optimization_scenarios   - Named run parameter bundles (at most one default)
  7. optimizer_settings       - Singleton global fallback defaults (id = 1)
  8. optimizer_executions     - Append-only run log
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from db.session import Base

EXECUTION_STATUSES = ("RUNNING", "SUCCESS", "FAILED")
OPTIMIZER_SETTINGS_ID = 1


# ─── 1. Attributes ─────────────────────────────────────────────────────────


class Attribute(Base):
    __tablename__ = "attributes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    is_param = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    parameters = relationship(
        "AttributeParameter",
        back_populates="attribute",
        order_by="AttributeParameter.id",
        lazy="selectin",
    )


# ─── 2. Attribute Parameters ───────────────────────────────────────────────


class AttributeParameter(Base):
    __tablename__ = "attribute_parameters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attribute_id = Column(Integer, ForeignKey("attributes.id"), nullable=False)
    value = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    attribute = relationship("Attribute", back_populates="parameters")

    __table_args__ = (
        UniqueConstraint("attribute_id", "value", name="uq_attribute_parameter_value"),
    )


# ─── 3. Changeover Groups ──────────────────────────────────────────────────


class ChangeoverGroup(Base):
    __tablename__ = "changeover_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ─── 4. Changeover Times (baseline per attribute) ──────────────────────────


class ChangeoverTime(Base):
    __tablename__ = "changeover_times"

    id = Column(Integer, primary_key=True, autoincrement=True)
    changeover_group_id = Column(Integer, ForeignKey("changeover_groups.id"), nullable=False)
    attribute_id = Column(Integer, ForeignKey("attributes.id"), nullable=False)
    changeover_time = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("changeover_group_id", "attribute_id", name="uq_changeover_time_group_attr"),
        CheckConstraint("changeover_time >= 0", name="ck_changeover_time_non_negative"),
    )


# ─── 5. Changeover Data (matrix cells) ─────────────────────────────────────


class ChangeoverData(Base):
    __tablename__ = "changeover_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    changeover_group_id = Column(Integer, ForeignKey("changeover_groups.id"), nullable=False)
    attribute_id = Column(Integer, ForeignKey("attributes.id"), nullable=False)
    from_attr_param_id = Column(Integer, ForeignKey("attribute_parameters.id"), nullable=False)
    to_attr_param_id = Column(Integer, ForeignKey("attribute_parameters.id"), nullable=False)
    setup_time = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            "changeover_group_id",
            "attribute_id",
            "from_attr_param_id",
            "to_attr_param_id",
            name="uq_changeover_data_cell",
        ),
        CheckConstraint("setup_time >= 0", name="ck_changeover_data_non_negative"),
        Index("ix_changeover_data_group_attr", "changeover_group_id", "attribute_id"),
    )


# ─── 6. Optimization Scenarios ─────────────────────────────────────────────


class OptimizationScenario(Base):
    __tablename__ = "optimization_scenarios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    strategy = Column(String(100), nullable=True)
    campaign_window_days = Column(Integer, nullable=True)
    gravity = Column(Boolean, nullable=True)
    resource_priority = Column(Text, nullable=False, default="")  # comma-joined resource ids
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ─── 7. Optimizer Settings (singleton) ─────────────────────────────────────


class OptimizerSetting(Base):
    __tablename__ = "optimizer_settings"

    id = Column(Integer, primary_key=True, default=OPTIMIZER_SETTINGS_ID)
    strategy = Column(String(100), nullable=False, default="balanced")
    campaign_window_days = Column(Integer, nullable=False, default=0)
    gravity = Column(Boolean, nullable=False, default=True)
    resource_priority = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ─── 8. Optimizer Executions ───────────────────────────────────────────────


class OptimizerExecution(Base):
    __tablename__ = "optimizer_executions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(20), nullable=False, default="RUNNING")
    scenario_name = Column(String(255), nullable=True)  # by value, no FK
    strategy = Column(String(100), nullable=False)
    campaign_window_days = Column(Integer, nullable=False, default=0)
    gravity = Column(Boolean, nullable=False, default=True)
    resource_priority = Column(Text, nullable=False, default="")
    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    record_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('RUNNING', 'SUCCESS', 'FAILED')", name="ck_optimizer_execution_status"),
        Index("ix_optimizer_executions_start_time", "start_time"),
    )
