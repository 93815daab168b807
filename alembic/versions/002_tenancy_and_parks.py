"""Tenancy and park master data

Revision ID: 002
Revises: 001
Create Date: 2026-03-02

Creates: organizations, users, roles, organization_memberships, funds, parks,
         turbines, park_revenue_phases, plots, plot_areas, lessors, leases,
         lease_plots, energy_settlements
Enums: organizationstatus, userstatus, membershipstatus, turbinestatus,
       plotstatus, plotareatype, compensationtype, leasestatus
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ── 1. Create enum types ──────────────────────────────────────────────
    op.execute("CREATE TYPE organizationstatus AS ENUM ('ACTIVE', 'SUSPENDED');")
    op.execute("CREATE TYPE userstatus AS ENUM ('ACTIVE', 'SUSPENDED', 'PENDING');")
    op.execute("CREATE TYPE membershipstatus AS ENUM ('INVITED', 'ACTIVE');")
    op.execute("CREATE TYPE turbinestatus AS ENUM ('ACTIVE', 'DECOMMISSIONED');")
    op.execute("CREATE TYPE plotstatus AS ENUM ('ACTIVE', 'INACTIVE');")
    op.execute("""
        CREATE TYPE plotareatype AS ENUM (
            'TURBINE_SITE', 'POOL', 'ACCESS_ROAD', 'COMPENSATION_AREA', 'CABLE_ROUTE'
        );
    """)
    op.execute("CREATE TYPE compensationtype AS ENUM ('ANNUAL', 'ONE_TIME');")
    op.execute("""
        CREATE TYPE leasestatus AS ENUM (
            'DRAFT', 'ACTIVE', 'EXPIRED', 'TERMINATED'
        );
    """)

    # ── 2. Tenancy ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            legal_name VARCHAR(255),
            slug VARCHAR(100),
            address JSONB,
            tax_id VARCHAR(50),
            primary_email VARCHAR(255),
            status organizationstatus NOT NULL DEFAULT 'ACTIVE',
            is_active BOOLEAN NOT NULL DEFAULT true,
            settings JSONB DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE UNIQUE INDEX ix_organizations_slug ON organizations (slug) WHERE slug IS NOT NULL;"
    )

    op.execute("""
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) NOT NULL UNIQUE,
            first_name VARCHAR(100) NOT NULL,
            last_name VARCHAR(100) NOT NULL,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_platform_admin BOOLEAN NOT NULL DEFAULT false,
            status userstatus NOT NULL DEFAULT 'ACTIVE',
            last_login_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX idx_users_organization_id ON users (organization_id);")

    op.execute("""
        CREATE TABLE roles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(50) NOT NULL,
            display_name VARCHAR(100) NOT NULL,
            description VARCHAR(500),
            permissions JSONB NOT NULL DEFAULT '[]',
            is_system BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_roles_name UNIQUE (name)
        );
    """)

    op.execute("""
        CREATE TABLE organization_memberships (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            role_id UUID NOT NULL REFERENCES roles(id) ON DELETE RESTRICT,
            status membershipstatus NOT NULL DEFAULT 'INVITED',
            joined_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_membership_user_org UNIQUE (user_id, organization_id)
        );
    """)
    op.execute(
        "CREATE INDEX ix_memberships_user_org_status "
        "ON organization_memberships (user_id, organization_id, status);"
    )

    # ── 3. Seed system roles ──────────────────────────────────────────────
    op.execute("""
        INSERT INTO roles (id, name, display_name, description, permissions, is_system) VALUES
        (gen_random_uuid(), 'admin', 'Administrator', 'Full access to the organization', '["*"]', true),
        (gen_random_uuid(), 'accountant', 'Accountant', 'Runs settlements, invoices and fee billing',
         '["settlements:read","settlements:create","settlements:update","settlements:delete",'
         '"invoices:read","invoices:create","invoices:update",'
         '"recurring-invoices:read","recurring-invoices:manage",'
         '"management-billing:read","management-billing:create","management-billing:update"]', true),
        (gen_random_uuid(), 'reviewer', 'Reviewer', 'Approves or rejects settlement periods',
         '["settlements:read","settlements:review","invoices:read",'
         '"recurring-invoices:read","management-billing:read"]', true),
        (gen_random_uuid(), 'viewer', 'Viewer', 'Read-only access',
         '["settlements:read","invoices:read","recurring-invoices:read","management-billing:read"]', true);
    """)

    # ── 4. Park master data ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE funds (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            legal_form VARCHAR(50),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_funds_organization_id ON funds (organization_id);")

    op.execute("""
        CREATE TABLE parks (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            short_name VARCHAR(50),
            commissioning_date DATE,
            minimum_rent_per_turbine NUMERIC(15, 2),
            turbine_site_share_percentage NUMERIC(5, 2),
            pool_share_percentage NUMERIC(5, 2),
            access_road_rate_per_sqm NUMERIC(10, 4),
            compensation_area_rate_per_sqm NUMERIC(10, 4),
            cable_rate_per_m NUMERIC(10, 4),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_parks_organization_id ON parks (organization_id);")

    op.execute("""
        CREATE TABLE turbines (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            park_id UUID NOT NULL REFERENCES parks(id) ON DELETE CASCADE,
            designation VARCHAR(100) NOT NULL,
            status turbinestatus NOT NULL DEFAULT 'ACTIVE',
            rated_power_kw NUMERIC(10, 2),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_turbines_park_id_status ON turbines (park_id, status);")

    op.execute("""
        CREATE TABLE park_revenue_phases (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            park_id UUID NOT NULL REFERENCES parks(id) ON DELETE CASCADE,
            phase_number INTEGER NOT NULL,
            start_year INTEGER NOT NULL,
            end_year INTEGER,
            revenue_share_percentage NUMERIC(5, 2) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_park_revenue_phases_park_phase UNIQUE (park_id, phase_number)
        );
    """)

    op.execute("""
        CREATE TABLE plots (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            park_id UUID NOT NULL REFERENCES parks(id) ON DELETE CASCADE,
            cadastral_district VARCHAR(100) NOT NULL,
            field_number VARCHAR(20) NOT NULL,
            plot_number VARCHAR(20) NOT NULL,
            status plotstatus NOT NULL DEFAULT 'ACTIVE',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_plots_organization_park ON plots (organization_id, park_id);")

    op.execute("""
        CREATE TABLE plot_areas (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            plot_id UUID NOT NULL REFERENCES plots(id) ON DELETE CASCADE,
            area_type plotareatype NOT NULL,
            area_sqm NUMERIC(12, 2),
            length_m NUMERIC(12, 2),
            compensation_type compensationtype NOT NULL DEFAULT 'ANNUAL',
            compensation_fixed_amount NUMERIC(15, 2),
            compensation_percentage NUMERIC(5, 2),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_plot_areas_plot_id ON plot_areas (plot_id);")

    op.execute("""
        CREATE TABLE lessors (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            first_name VARCHAR(100),
            last_name VARCHAR(100),
            company_name VARCHAR(255),
            street VARCHAR(255),
            house_number VARCHAR(20),
            postal_code VARCHAR(20),
            city VARCHAR(100),
            country VARCHAR(100) NOT NULL DEFAULT 'Deutschland',
            bank_iban VARCHAR(34),
            bank_bic VARCHAR(11),
            bank_name VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_lessors_organization_id ON lessors (organization_id);")

    op.execute("""
        CREATE TABLE leases (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            lessor_id UUID NOT NULL REFERENCES lessors(id) ON DELETE RESTRICT,
            contract_number VARCHAR(50),
            status leasestatus NOT NULL DEFAULT 'DRAFT',
            start_date DATE,
            end_date DATE,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_leases_organization_status ON leases (organization_id, status);")

    op.execute("""
        CREATE TABLE lease_plots (
            lease_id UUID NOT NULL REFERENCES leases(id) ON DELETE CASCADE,
            plot_id UUID NOT NULL REFERENCES plots(id) ON DELETE CASCADE,
            PRIMARY KEY (lease_id, plot_id)
        );
    """)

    # ── 5. Energy revenue ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE energy_settlements (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            park_id UUID NOT NULL REFERENCES parks(id) ON DELETE CASCADE,
            fund_id UUID REFERENCES funds(id) ON DELETE SET NULL,
            year INTEGER NOT NULL,
            month INTEGER,
            net_operator_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_energy_settlements_park_year ON energy_settlements (park_id, year);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS energy_settlements;")
    op.execute("DROP TABLE IF EXISTS lease_plots;")
    op.execute("DROP TABLE IF EXISTS leases;")
    op.execute("DROP TABLE IF EXISTS lessors;")
    op.execute("DROP TABLE IF EXISTS plot_areas;")
    op.execute("DROP TABLE IF EXISTS plots;")
    op.execute("DROP TABLE IF EXISTS park_revenue_phases;")
    op.execute("DROP TABLE IF EXISTS turbines;")
    op.execute("DROP TABLE IF EXISTS parks;")
    op.execute("DROP TABLE IF EXISTS funds;")
    op.execute("DROP TABLE IF EXISTS organization_memberships;")
    op.execute("DROP TABLE IF EXISTS roles;")
    op.execute("DROP TABLE IF EXISTS users;")
    op.execute("DROP TABLE IF EXISTS organizations;")

    op.execute("DROP TYPE IF EXISTS leasestatus;")
    op.execute("DROP TYPE IF EXISTS compensationtype;")
    op.execute("DROP TYPE IF EXISTS plotareatype;")
    op.execute("DROP TYPE IF EXISTS plotstatus;")
    op.execute("DROP TYPE IF EXISTS turbinestatus;")
    op.execute("DROP TYPE IF EXISTS membershipstatus;")
    op.execute("DROP TYPE IF EXISTS userstatus;")
    op.execute("DROP TYPE IF EXISTS organizationstatus;")
