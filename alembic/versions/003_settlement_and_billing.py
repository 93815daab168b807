"""Settlement, invoicing, recurring invoices and management billing

Revision ID: 003
Revises: 002
Create Date: 2026-03-09

Creates: settlement_periods, settlement_period_transitions, recurring_invoices,
         invoices, invoice_items, park_stakeholders, stakeholder_fee_history,
         management_billings
Enums: settlementperiodtype, advanceinterval, settlementperiodstatus,
       settlementaction, invoicetype, invoicestatus, taxtype, recipienttype,
       recurringfrequency, recurringinvoicestatus, stakeholderrole,
       stakeholderstatus, managementbillingstatus
Sequences: invoice_number_seq, credit_note_number_seq
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ── 1. Create enum types ──────────────────────────────────────────────
    op.execute("CREATE TYPE settlementperiodtype AS ENUM ('ADVANCE', 'FINAL');")
    op.execute("CREATE TYPE advanceinterval AS ENUM ('MONTHLY', 'QUARTERLY', 'YEARLY');")
    op.execute("""
        CREATE TYPE settlementperiodstatus AS ENUM (
            'OPEN', 'IN_PROGRESS', 'PENDING_REVIEW', 'APPROVED', 'CLOSED'
        );
    """)
    op.execute("""
        CREATE TYPE settlementaction AS ENUM (
            'CALCULATE', 'SUBMIT_FOR_REVIEW', 'APPROVE', 'REJECT',
            'CREATE_INVOICES', 'CLOSE'
        );
    """)
    op.execute("CREATE TYPE invoicetype AS ENUM ('INVOICE', 'CREDIT_NOTE');")
    op.execute("CREATE TYPE invoicestatus AS ENUM ('DRAFT', 'SENT', 'PAID', 'CANCELLED');")
    op.execute("CREATE TYPE taxtype AS ENUM ('STANDARD', 'REDUCED', 'EXEMPT');")
    op.execute("CREATE TYPE recipienttype AS ENUM ('SHAREHOLDER', 'LESSOR', 'FUND', 'CUSTOM');")
    op.execute("""
        CREATE TYPE recurringfrequency AS ENUM (
            'MONTHLY', 'QUARTERLY', 'SEMI_ANNUAL', 'ANNUAL'
        );
    """)
    op.execute("CREATE TYPE recurringinvoicestatus AS ENUM ('ACTIVE', 'DISABLED', 'EXPIRED');")
    op.execute("""
        CREATE TYPE stakeholderrole AS ENUM (
            'DEVELOPER', 'GRID_OPERATOR', 'TECHNICAL_BF', 'COMMERCIAL_BF', 'OPERATOR'
        );
    """)
    op.execute("CREATE TYPE stakeholderstatus AS ENUM ('ACTIVE', 'INACTIVE');")
    op.execute("""
        CREATE TYPE managementbillingstatus AS ENUM (
            'DRAFT', 'CALCULATED', 'INVOICED', 'CANCELLED'
        );
    """)

    # ── 2. Invoice number sequences ───────────────────────────────────────
    op.execute("CREATE SEQUENCE invoice_number_seq START 1;")
    op.execute("CREATE SEQUENCE credit_note_number_seq START 1;")

    # ── 3. Settlement periods ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE settlement_periods (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            park_id UUID NOT NULL REFERENCES parks(id) ON DELETE CASCADE,
            year INTEGER NOT NULL,
            month INTEGER,
            period_type settlementperiodtype NOT NULL DEFAULT 'FINAL',
            advance_interval advanceinterval,
            status settlementperiodstatus NOT NULL DEFAULT 'OPEN',
            total_revenue NUMERIC(15, 2),
            total_minimum_rent NUMERIC(15, 2),
            total_actual_rent NUMERIC(15, 2),
            calculated_at TIMESTAMPTZ,
            reviewed_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewed_at TIMESTAMPTZ,
            review_notes TEXT,
            linked_energy_settlement_id UUID REFERENCES energy_settlements(id) ON DELETE SET NULL,
            notes TEXT,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            closed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_settlement_periods_month_matches_type CHECK (
                (period_type = 'ADVANCE' AND month BETWEEN 1 AND 12)
                OR (period_type = 'FINAL' AND month IS NULL)
            )
        );
    """)
    op.execute("CREATE INDEX ix_settlement_periods_organization_id ON settlement_periods (organization_id);")
    op.execute("CREATE INDEX ix_settlement_periods_park_year ON settlement_periods (park_id, year);")
    op.execute("CREATE INDEX ix_settlement_periods_status ON settlement_periods (status);")
    op.execute("""
        CREATE UNIQUE INDEX uq_settlement_periods_park_year_month_type
          ON settlement_periods (organization_id, park_id, year, month, period_type)
          NULLS NOT DISTINCT;
    """)

    op.execute("""
        CREATE TABLE settlement_period_transitions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            settlement_period_id UUID NOT NULL REFERENCES settlement_periods(id) ON DELETE CASCADE,
            to_status settlementperiodstatus NOT NULL,
            action settlementaction NOT NULL,
            triggered_by UUID REFERENCES users(id) ON DELETE SET NULL,
            reason TEXT,
            metadata_extra JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_settlement_period_transitions_period_id "
        "ON settlement_period_transitions (settlement_period_id);"
    )

    # ── 4. Recurring invoices ─────────────────────────────────────────────
    # last_invoice_id gets its foreign key once invoices exists
    op.execute("""
        CREATE TABLE recurring_invoices (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(200) NOT NULL,
            recipient_type recipienttype NOT NULL,
            recipient_id UUID,
            recipient_name VARCHAR(255) NOT NULL,
            recipient_address TEXT,
            invoice_type invoicetype NOT NULL DEFAULT 'INVOICE',
            positions JSONB NOT NULL DEFAULT '[]',
            frequency recurringfrequency NOT NULL,
            day_of_month INTEGER,
            start_date DATE NOT NULL,
            end_date DATE,
            next_run_at DATE NOT NULL,
            last_run_at DATE,
            status recurringinvoicestatus NOT NULL DEFAULT 'ACTIVE',
            total_generated INTEGER NOT NULL DEFAULT 0,
            last_invoice_id UUID,
            notes TEXT,
            park_id UUID REFERENCES parks(id) ON DELETE SET NULL,
            fund_id UUID REFERENCES funds(id) ON DELETE SET NULL,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_recurring_invoices_day_of_month
              CHECK (day_of_month IS NULL OR day_of_month BETWEEN 1 AND 28),
            CONSTRAINT ck_recurring_invoices_end_after_start
              CHECK (end_date IS NULL OR end_date > start_date)
        );
    """)
    op.execute("CREATE INDEX ix_recurring_invoices_organization_id ON recurring_invoices (organization_id);")
    op.execute(
        "CREATE INDEX ix_recurring_invoices_status_next_run ON recurring_invoices (status, next_run_at);"
    )

    # ── 5. Invoices ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE invoices (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            invoice_number VARCHAR(50) NOT NULL UNIQUE,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            invoice_type invoicetype NOT NULL DEFAULT 'INVOICE',
            status invoicestatus NOT NULL DEFAULT 'DRAFT',
            recipient_type recipienttype,
            recipient_id UUID,
            recipient_name VARCHAR(255),
            recipient_address TEXT,
            net_amount NUMERIC(15, 2) NOT NULL,
            tax_amount NUMERIC(15, 2) NOT NULL DEFAULT 0,
            gross_amount NUMERIC(15, 2) NOT NULL,
            currency VARCHAR(3) NOT NULL DEFAULT 'EUR',
            invoice_date DATE NOT NULL,
            due_date DATE,
            service_period_start DATE,
            service_period_end DATE,
            sent_at TIMESTAMPTZ,
            paid_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            park_id UUID REFERENCES parks(id) ON DELETE SET NULL,
            fund_id UUID REFERENCES funds(id) ON DELETE SET NULL,
            lease_id UUID REFERENCES leases(id) ON DELETE SET NULL,
            settlement_period_id UUID REFERENCES settlement_periods(id) ON DELETE SET NULL,
            recurring_invoice_id UUID REFERENCES recurring_invoices(id) ON DELETE SET NULL,
            notes TEXT,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_invoices_organization_id ON invoices (organization_id);")
    op.execute("CREATE INDEX ix_invoices_status ON invoices (status);")
    op.execute("""
        CREATE INDEX ix_invoices_settlement_period_id ON invoices (settlement_period_id)
          WHERE settlement_period_id IS NOT NULL;
    """)
    op.execute("""
        CREATE INDEX ix_invoices_recurring_invoice_id ON invoices (recurring_invoice_id)
          WHERE recurring_invoice_id IS NOT NULL;
    """)
    op.execute("""
        ALTER TABLE recurring_invoices
          ADD CONSTRAINT fk_recurring_invoices_last_invoice_id
          FOREIGN KEY (last_invoice_id) REFERENCES invoices(id) ON DELETE SET NULL;
    """)

    op.execute("""
        CREATE TABLE invoice_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            invoice_id UUID NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            description TEXT NOT NULL,
            quantity NUMERIC(12, 3) NOT NULL,
            unit VARCHAR(20),
            unit_price NUMERIC(15, 2) NOT NULL,
            tax_type taxtype NOT NULL DEFAULT 'STANDARD',
            tax_rate NUMERIC(5, 2) NOT NULL,
            net_amount NUMERIC(15, 2) NOT NULL,
            tax_amount NUMERIC(15, 2) NOT NULL,
            gross_amount NUMERIC(15, 2) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_invoice_items_invoice_id ON invoice_items (invoice_id);")

    # ── 6. Management billing ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE park_stakeholders (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            park_id UUID NOT NULL REFERENCES parks(id) ON DELETE CASCADE,
            park_organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            role stakeholderrole NOT NULL,
            fee_percentage NUMERIC(5, 3),
            billing_enabled BOOLEAN NOT NULL DEFAULT false,
            tax_type taxtype NOT NULL DEFAULT 'STANDARD',
            visible_fund_ids JSONB NOT NULL DEFAULT '[]',
            valid_from DATE NOT NULL,
            valid_to DATE,
            status stakeholderstatus NOT NULL DEFAULT 'ACTIVE',
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_park_stakeholders_org_park_role UNIQUE (organization_id, park_id, role)
        );
    """)
    op.execute("CREATE INDEX ix_park_stakeholders_park_id ON park_stakeholders (park_id);")

    op.execute("""
        CREATE TABLE stakeholder_fee_history (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            stakeholder_id UUID NOT NULL REFERENCES park_stakeholders(id) ON DELETE CASCADE,
            fee_percentage NUMERIC(5, 3) NOT NULL,
            valid_from DATE NOT NULL,
            valid_until DATE,
            reason TEXT,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_stakeholder_fee_history_stakeholder_id ON stakeholder_fee_history (stakeholder_id);"
    )

    op.execute("""
        CREATE TABLE management_billings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            stakeholder_id UUID NOT NULL REFERENCES park_stakeholders(id) ON DELETE CASCADE,
            year INTEGER NOT NULL,
            month INTEGER,
            base_revenue NUMERIC(15, 2) NOT NULL,
            fee_percentage_used NUMERIC(5, 3) NOT NULL,
            fee_net NUMERIC(15, 2) NOT NULL,
            tax_type taxtype NOT NULL DEFAULT 'STANDARD',
            tax_rate NUMERIC(5, 2) NOT NULL,
            tax_amount NUMERIC(15, 2) NOT NULL,
            fee_gross NUMERIC(15, 2) NOT NULL,
            fund_breakdown JSONB NOT NULL DEFAULT '[]',
            status managementbillingstatus NOT NULL DEFAULT 'DRAFT',
            calculated_at TIMESTAMPTZ,
            invoice_id UUID REFERENCES invoices(id) ON DELETE SET NULL,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_management_billings_organization_id ON management_billings (organization_id);")
    op.execute("""
        CREATE UNIQUE INDEX uq_management_billings_stakeholder_period
          ON management_billings (stakeholder_id, year, month)
          NULLS NOT DISTINCT;
    """)


def downgrade() -> None:
    # ── Drop tables in reverse order ───────────────────────────────────────
    op.execute("DROP TABLE IF EXISTS management_billings;")
    op.execute("DROP TABLE IF EXISTS stakeholder_fee_history;")
    op.execute("DROP TABLE IF EXISTS park_stakeholders;")
    op.execute("DROP TABLE IF EXISTS invoice_items;")
    op.execute(
        "ALTER TABLE recurring_invoices DROP CONSTRAINT IF EXISTS fk_recurring_invoices_last_invoice_id;"
    )
    op.execute("DROP TABLE IF EXISTS invoices;")
    op.execute("DROP TABLE IF EXISTS recurring_invoices;")
    op.execute("DROP TABLE IF EXISTS settlement_period_transitions;")
    op.execute("DROP TABLE IF EXISTS settlement_periods;")

    op.execute("DROP SEQUENCE IF EXISTS credit_note_number_seq;")
    op.execute("DROP SEQUENCE IF EXISTS invoice_number_seq;")

    # ── Drop enum types ────────────────────────────────────────────────────
    op.execute("DROP TYPE IF EXISTS managementbillingstatus;")
    op.execute("DROP TYPE IF EXISTS stakeholderstatus;")
    op.execute("DROP TYPE IF EXISTS stakeholderrole;")
    op.execute("DROP TYPE IF EXISTS recurringinvoicestatus;")
    op.execute("DROP TYPE IF EXISTS recurringfrequency;")
    op.execute("DROP TYPE IF EXISTS recipienttype;")
    op.execute("DROP TYPE IF EXISTS taxtype;")
    op.execute("DROP TYPE IF EXISTS invoicestatus;")
    op.execute("DROP TYPE IF EXISTS invoicetype;")
    op.execute("DROP TYPE IF EXISTS settlementaction;")
    op.execute("DROP TYPE IF EXISTS settlementperiodstatus;")
    op.execute("DROP TYPE IF EXISTS advanceinterval;")
    op.execute("DROP TYPE IF EXISTS settlementperiodtype;")
