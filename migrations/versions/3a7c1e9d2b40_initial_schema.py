"""initial schema

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2026-10-19 09:12:41.208311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3a7c1e9d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps(soft_delete: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]
    if soft_delete:
        cols.append(sa.Column("deleted_at", sa.DateTime(), nullable=True))
    return cols


def upgrade() -> None:
    """Create the platform tables (auth, RBAC, activity log) and every resource table."""
    conn = op.get_bind()
    existing_tables = set(sa.inspect(conn).get_table_names())

    if "schools" not in existing_tables:
        op.create_table(
            "schools",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("district", sa.String(255), nullable=False),
            sa.Column("state", sa.String(128), nullable=False),
            sa.Column("contact_email", sa.String(320), nullable=False),
            sa.Column("max_travel_distance", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("max_students_per_test", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
        )
        op.create_index("idx_schools_name", "schools", ["name"])
        op.create_index("idx_schools_state", "schools", ["state"])

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(64), nullable=False, unique=True),
            *_timestamps(soft_delete=False),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(64), nullable=False, unique=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.String(36), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id", sa.String(36), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
            ),
        )

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("phone_number", sa.String(64), nullable=True),
            sa.Column("security_level", sa.String(32), nullable=False, server_default="LIMITED"),
            sa.Column("status", sa.String(16), nullable=False, server_default="INACTIVE"),
            sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
            sa.Column("last_login", sa.DateTime(), nullable=True),
            sa.Column("school_id", sa.String(36), sa.ForeignKey("schools.id", ondelete="SET NULL"), nullable=True),
            sa.Column("role_id", sa.String(36), sa.ForeignKey("roles.id", ondelete="SET NULL"), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_users_last_name", "users", ["last_name"])
        op.create_index("idx_users_status", "users", ["status"])

    if "user_tokens" not in existing_tables:
        op.create_table(
            "user_tokens",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("type", sa.String(32), nullable=False),
            sa.Column("token", sa.String(128), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("user_id", "type", name="uq_user_tokens_user_id_type"),
        )

    if "activity_logs" not in existing_tables:
        op.create_table(
            "activity_logs",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("subject_id", sa.String(64), nullable=True),
            sa.Column("action", sa.String(64), nullable=False),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )
        op.create_index("idx_activity_logs_user_id", "activity_logs", ["user_id"])
        op.create_index("idx_activity_logs_subject_id", "activity_logs", ["subject_id"])

    # Students
    if "accommodations" not in existing_tables:
        op.create_table(
            "accommodations",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False, unique=True),
            sa.Column("description", sa.String(1024), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "students" not in existing_tables:
        op.create_table(
            "students",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("dob", sa.Date(), nullable=False),
            sa.Column("grade_level", sa.Integer(), nullable=False),
            sa.Column("student_code", sa.String(64), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
            sa.Column("confirmation_status", sa.String(16), nullable=False, server_default="PENDING"),
            sa.Column("school_id", sa.String(36), sa.ForeignKey("schools.id"), nullable=False),
            sa.Column("parent_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            *_timestamps(),
        )
        op.create_index("idx_students_last_name", "students", ["last_name"])
        op.create_index("idx_students_school_id", "students", ["school_id"])
        op.create_index("idx_students_student_code", "students", ["student_code"])

    if "student_accommodations" not in existing_tables:
        op.create_table(
            "student_accommodations",
            sa.Column("student_id", sa.String(36), sa.ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "accommodation_id",
                sa.String(36),
                sa.ForeignKey("accommodations.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            sa.Column("details", JSON, nullable=True),
        )

    if "student_teachers" not in existing_tables:
        op.create_table(
            "student_teachers",
            sa.Column("student_id", sa.String(36), sa.ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("teacher_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    # Providers and their linked records
    if "providers" not in existing_tables:
        op.create_table(
            "providers",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("license_number", sa.String(64), nullable=True),
            sa.Column("credentials", sa.String(255), nullable=False),
            sa.Column("signature", sa.Text(), nullable=True),
            sa.Column("service_fee_structure", sa.String(16), nullable=False, server_default="HOURLY"),
            sa.Column("nss_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("review_notes", JSON, nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
            *_timestamps(),
        )
        op.create_index("idx_providers_user_id", "providers", ["user_id"])
        op.create_index("idx_providers_status", "providers", ["status"])

    for table, value_column in (("documents", "document"), ("contracts", "contract")):
        if table not in existing_tables:
            op.create_table(
                table,
                sa.Column("id", sa.String(36), primary_key=True),
                sa.Column(
                    "provider_id", sa.String(36), sa.ForeignKey("providers.id", ondelete="SET NULL"), nullable=True
                ),
                sa.Column(value_column, sa.String(1024), nullable=False),
                sa.Column(
                    "created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
                ),
                *_timestamps(),
            )

    if "contacts" not in existing_tables:
        op.create_table(
            "contacts",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("provider_id", sa.String(36), sa.ForeignKey("providers.id", ondelete="SET NULL"), nullable=True),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("cell_phone", sa.String(64), nullable=True),
            sa.Column("work_phone", sa.String(64), nullable=True),
            sa.Column("email", sa.String(320), nullable=True),
            sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            *_timestamps(),
        )

    for table, column, target in (
        ("provider_documents", "document_id", "documents.id"),
        ("provider_contracts", "contract_id", "contracts.id"),
        ("provider_contacts", "contact_id", "contacts.id"),
    ):
        if table not in existing_tables:
            op.create_table(
                table,
                sa.Column(
                    "provider_id", sa.String(36), sa.ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True
                ),
                sa.Column(column, sa.String(36), sa.ForeignKey(target, ondelete="CASCADE"), primary_key=True),
                sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            )

    if "therapists" not in existing_tables:
        op.create_table(
            "therapists",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("disciplines", sa.String(255), nullable=False),
            sa.Column("license_number", sa.String(64), nullable=False),
            sa.Column("medicaid_national_provider_id", sa.Integer(), nullable=False),
            sa.Column("social_security", sa.String(64), nullable=False),
            sa.Column("state_medicaid_provider_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
            *_timestamps(),
        )
        op.create_index("idx_therapists_user_id", "therapists", ["user_id"])
        op.create_index("idx_therapists_status", "therapists", ["status"])

    if "therapy_services" not in existing_tables:
        op.create_table(
            "therapy_services",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("student_id", sa.String(36), sa.ForeignKey("students.id"), nullable=False),
            sa.Column("provider_id", sa.String(36), sa.ForeignKey("providers.id"), nullable=False),
            sa.Column("service_type", sa.String(16), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="SCHEDULED"),
            sa.Column("service_begin_date", sa.DateTime(), nullable=False),
            sa.Column("session_date", sa.DateTime(), nullable=False),
            sa.Column("session_notes", sa.Text(), nullable=False, server_default=""),
            sa.Column("delivery_mode", sa.String(16), nullable=False),
            sa.Column("goal_tracking", JSON, nullable=True),
            sa.Column("ieps", JSON, nullable=True),
            sa.Column("next_meeting_date", sa.DateTime(), nullable=True),
            *_timestamps(),
        )
        op.create_index("idx_therapy_services_student_id", "therapy_services", ["student_id"])
        op.create_index("idx_therapy_services_provider_id", "therapy_services", ["provider_id"])
        op.create_index("idx_therapy_services_session_date", "therapy_services", ["session_date"])

    if "reports" not in existing_tables:
        op.create_table(
            "reports",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("school_id", sa.String(36), sa.ForeignKey("schools.id"), nullable=False),
            sa.Column("student_id", sa.String(36), sa.ForeignKey("students.id"), nullable=False),
            sa.Column("therapy_service_id", sa.String(36), sa.ForeignKey("therapy_services.id"), nullable=False),
            sa.Column("report_type", sa.String(16), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            *_timestamps(),
        )
        op.create_index("idx_reports_therapy_service_id", "reports", ["therapy_service_id"])
        op.create_index("idx_reports_created_at", "reports", ["created_at"])

    if "invoices" not in existing_tables:
        op.create_table(
            "invoices",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("provider_id", sa.String(36), sa.ForeignKey("providers.id"), nullable=False),
            sa.Column("student_id", sa.String(36), sa.ForeignKey("students.id"), nullable=False),
            sa.Column("therapy_service_id", sa.String(36), sa.ForeignKey("therapy_services.id"), nullable=False),
            sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
            sa.Column("date_issued", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            *_timestamps(),
        )
        op.create_index("idx_invoices_status", "invoices", ["status"])
        op.create_index("idx_invoices_date_issued", "invoices", ["date_issued"])


def downgrade() -> None:
    for table in (
        "invoices",
        "reports",
        "therapy_services",
        "therapists",
        "provider_contacts",
        "provider_contracts",
        "provider_documents",
        "contacts",
        "contracts",
        "documents",
        "providers",
        "student_teachers",
        "student_accommodations",
        "students",
        "accommodations",
        "activity_logs",
        "user_tokens",
        "users",
        "role_permissions",
        "permissions",
        "roles",
        "schools",
    ):
        op.drop_table(table)
