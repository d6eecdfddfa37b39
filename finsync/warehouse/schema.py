"""
Warehouse schema for synced records.

Every table carries the unique constraint its upserts conflict on. Upstream
dates are stored as text, exactly as reported.
"""

from .connection import DatabaseConnectionPool

ERP_TRANSACTION_COLUMNS = """
    upstream_id         TEXT NOT NULL,
    tenant_id           TEXT NOT NULL,
    tran_id             TEXT,
    tran_date           TEXT,
    entity_name         TEXT,
    entity_id           TEXT,
    total               NUMERIC NOT NULL DEFAULT 0,
    status              TEXT,
    memo                TEXT,
    currency_code       TEXT NOT NULL DEFAULT 'USD',
    exchange_rate       NUMERIC NOT NULL DEFAULT 1,
    created_date        TEXT,
    last_modified_date  TEXT,
    raw_data            JSONB NOT NULL DEFAULT '{}'::jsonb,
    synced_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
"""

TABLES: dict[str, str] = {
    "erp_invoices": f"""
        CREATE TABLE IF NOT EXISTS erp_invoices (
            {ERP_TRANSACTION_COLUMNS}
            subtotal            NUMERIC NOT NULL DEFAULT 0,
            tax_total           NUMERIC NOT NULL DEFAULT 0,
            discount_total      NUMERIC NOT NULL DEFAULT 0,
            crm_order_number    TEXT,
            crm_opportunity     TEXT,
            crm_quote           TEXT,
            CONSTRAINT erp_invoices_key UNIQUE (upstream_id, tenant_id)
        )
    """,
    "erp_payments": f"""
        CREATE TABLE IF NOT EXISTS erp_payments (
            {ERP_TRANSACTION_COLUMNS}
            payment_method      TEXT,
            reference_number    TEXT,
            CONSTRAINT erp_payments_key UNIQUE (upstream_id, tenant_id)
        )
    """,
    "erp_credit_memos": f"""
        CREATE TABLE IF NOT EXISTS erp_credit_memos (
            {ERP_TRANSACTION_COLUMNS}
            subtotal            NUMERIC NOT NULL DEFAULT 0,
            tax_total           NUMERIC NOT NULL DEFAULT 0,
            CONSTRAINT erp_credit_memos_key UNIQUE (upstream_id, tenant_id)
        )
    """,
    "erp_payment_applications": """
        CREATE TABLE IF NOT EXISTS erp_payment_applications (
            payment_upstream_id TEXT NOT NULL,
            payment_number      TEXT,
            payment_date        TEXT,
            payment_amount      NUMERIC NOT NULL DEFAULT 0,
            payment_customer    TEXT,
            invoice_upstream_id TEXT NOT NULL,
            invoice_number      TEXT,
            invoice_date        TEXT,
            invoice_customer    TEXT,
            apply_date          TEXT,
            apply_amount        NUMERIC NOT NULL DEFAULT 0,
            days_to_settle      INTEGER,
            tenant_id           TEXT NOT NULL,
            synced_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT erp_payment_applications_key
                UNIQUE (payment_upstream_id, invoice_upstream_id, tenant_id)
        )
    """,
    "erp_invoice_line_items": """
        CREATE TABLE IF NOT EXISTS erp_invoice_line_items (
            invoice_upstream_id TEXT NOT NULL,
            line_number         INTEGER NOT NULL,
            item_id             TEXT,
            item_name           TEXT,
            description         TEXT,
            quantity            NUMERIC NOT NULL DEFAULT 0,
            rate                NUMERIC NOT NULL DEFAULT 0,
            amount              NUMERIC NOT NULL DEFAULT 0,
            tax_code            TEXT,
            tax_rate            NUMERIC NOT NULL DEFAULT 0,
            tax_amount          NUMERIC NOT NULL DEFAULT 0,
            raw_data            JSONB NOT NULL DEFAULT '{}'::jsonb,
            tenant_id           TEXT NOT NULL,
            synced_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT erp_invoice_line_items_key
                UNIQUE (invoice_upstream_id, line_number, tenant_id),
            CONSTRAINT erp_invoice_line_items_invoice_fk
                FOREIGN KEY (invoice_upstream_id, tenant_id)
                REFERENCES erp_invoices (upstream_id, tenant_id)
                ON DELETE CASCADE
        )
    """,
    "crm_opportunities": """
        CREATE TABLE IF NOT EXISTS crm_opportunities (
            upstream_id         TEXT NOT NULL,
            tenant_id           TEXT NOT NULL,
            name                TEXT,
            created_date        TEXT,
            close_date          TEXT,
            last_modified_date  TEXT,
            amount              NUMERIC NOT NULL DEFAULT 0,
            stage_name          TEXT,
            opportunity_type    TEXT,
            lead_source         TEXT,
            probability         NUMERIC,
            is_closed           BOOLEAN NOT NULL DEFAULT FALSE,
            is_won              BOOLEAN NOT NULL DEFAULT FALSE,
            account_id          TEXT,
            owner_id            TEXT,
            currency_code       TEXT,
            customer_tier       TEXT,
            market_segment      TEXT,
            channel             TEXT,
            customer_country    TEXT,
            description         TEXT,
            is_renewal          BOOLEAN,
            auto_renew_quote    BOOLEAN,
            raw_data            JSONB NOT NULL DEFAULT '{}'::jsonb,
            synced_at           TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT crm_opportunities_key UNIQUE (upstream_id, tenant_id)
        )
    """,
    "crm_orders": """
        CREATE TABLE IF NOT EXISTS crm_orders (
            upstream_id             TEXT NOT NULL,
            tenant_id               TEXT NOT NULL,
            order_number            TEXT,
            status                  TEXT,
            effective_date          TEXT,
            total_amount            NUMERIC NOT NULL DEFAULT 0,
            order_type              TEXT,
            account_id              TEXT,
            owner_id                TEXT,
            opportunity_upstream_id TEXT,
            quote_upstream_id       TEXT,
            billing_frequency       TEXT,
            shipping_country_code   TEXT,
            currency_code           TEXT,
            created_date            TEXT,
            last_modified_date      TEXT,
            raw_data                JSONB NOT NULL DEFAULT '{}'::jsonb,
            synced_at               TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT crm_orders_key UNIQUE (upstream_id, tenant_id)
        )
    """,
    "crm_quotes": """
        CREATE TABLE IF NOT EXISTS crm_quotes (
            upstream_id             TEXT NOT NULL,
            tenant_id               TEXT NOT NULL,
            name                    TEXT,
            status                  TEXT,
            quote_type              TEXT,
            created_date            TEXT,
            expiration_date         TEXT,
            end_date                TEXT,
            last_modified_date      TEXT,
            net_amount              NUMERIC NOT NULL DEFAULT 0,
            quote_total             NUMERIC NOT NULL DEFAULT 0,
            total_arr               NUMERIC,
            new_arr                 NUMERIC,
            account_id              TEXT,
            owner_id                TEXT,
            primary_contact_id      TEXT,
            opportunity_upstream_id TEXT,
            billing_country         TEXT,
            shipping_country        TEXT,
            customer_country        TEXT,
            payment_terms           TEXT,
            billing_frequency       TEXT,
            contracting_method      TEXT,
            approval_status         TEXT,
            subsidiary              TEXT,
            is_primary              BOOLEAN NOT NULL DEFAULT FALSE,
            is_ordered              BOOLEAN,
            is_renewal              BOOLEAN,
            is_amendment            BOOLEAN,
            is_cancellation         BOOLEAN,
            currency_code           TEXT,
            raw_data                JSONB NOT NULL DEFAULT '{}'::jsonb,
            synced_at               TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT crm_quotes_key UNIQUE (upstream_id, tenant_id)
        )
    """,
}

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_erp_invoices_tenant_date ON erp_invoices (tenant_id, tran_date)",
    "CREATE INDEX IF NOT EXISTS idx_erp_payments_tenant_date ON erp_payments (tenant_id, tran_date)",
    "CREATE INDEX IF NOT EXISTS idx_erp_credit_memos_tenant_date ON erp_credit_memos (tenant_id, tran_date)",
    "CREATE INDEX IF NOT EXISTS idx_erp_payment_applications_invoice "
    "ON erp_payment_applications (tenant_id, invoice_upstream_id)",
    "CREATE INDEX IF NOT EXISTS idx_crm_orders_opportunity ON crm_orders (tenant_id, opportunity_upstream_id)",
    "CREATE INDEX IF NOT EXISTS idx_crm_quotes_opportunity ON crm_quotes (tenant_id, opportunity_upstream_id)",
]


async def ensure_schema(pool: DatabaseConnectionPool) -> list[str]:
    """
    Create the sync tables and indexes if they do not exist.

    Tables are created in dependency order in one transaction.

    Returns:
        Names of the tables checked
    """
    async with pool.get_connection() as conn:
        async with conn.cursor() as cur:
            for ddl in TABLES.values():
                await cur.execute(ddl)
            for ddl in INDEXES:
                await cur.execute(ddl)
        await conn.commit()
    return list(TABLES)
