# pgsql_scripts/views.py
from alembic_utils.pg_materialized_view import PGMaterializedView

# 대시보드 오더 행. 갱신은 labdesk.domains.dashboard.tasks.refresh_dashboard_task 가 수행합니다.
# Enum 컬럼(priority, verify_status, invoice status)은 멤버 이름으로 저장됩니다.
mv_dashboard_orders = PGMaterializedView(
    schema="public",
    signature="mv_dashboard_orders",
    definition="""
    WITH analytes AS (
        SELECT
            r.order_id,
            COUNT(rv.id) AS expected_total,
            COUNT(rv.id) FILTER (WHERE rv.value IS NOT NULL AND rv.value <> '') AS entered_total,
            COUNT(rv.id) FILTER (WHERE rv.verify_status = 'APPROVED') AS verified_total,
            jsonb_agg(DISTINCT jsonb_build_object(
                'result_id', r.id,
                'test_name', r.test_name,
                'status', r.status
            )) AS tests
        FROM results r
        LEFT JOIN result_values rv ON rv.result_id = r.id
        GROUP BY r.order_id
    ),
    billing AS (
        SELECT
            i.order_id,
            SUM(i.total) AS invoice_total,
            COALESCE(SUM(p.paid), 0) AS paid_total
        FROM invoices i
        LEFT JOIN (
            SELECT invoice_id, SUM(amount) AS paid FROM payments GROUP BY invoice_id
        ) p ON p.invoice_id = i.id
        GROUP BY i.order_id
    )
    SELECT
        o.id AS order_id,
        o.lab_id,
        o.order_date,
        o.expected_date,
        o.order_number,
        o.patient_id,
        o.patient_name,
        o.doctor,
        CASE o.priority::text WHEN 'STAT' THEN 'STAT' ELSE initcap(o.priority::text) END AS priority,
        o.total_amount,
        o.sample_collected_at,
        CASE
            WHEN o.sample_collected_at IS NOT NULL AND o.sample_collected_by IS NOT NULL THEN 'collected'
            ELSE 'pending'
        END AS sample_status,
        COALESCE(a.expected_total, 0)::int AS expected_total,
        COALESCE(a.entered_total, 0)::int AS entered_total,
        COALESCE(a.verified_total, 0)::int AS verified_total,
        CASE
            WHEN COALESCE(a.expected_total, 0) = 0 THEN 0
            ELSE ROUND(100.0 * a.verified_total / a.expected_total)::int
        END AS percent_complete,
        (COALESCE(a.entered_total, 0) > 0 AND a.entered_total < a.expected_total) AS any_partial,
        (COALESCE(a.expected_total, 0) > 0 AND a.verified_total = a.expected_total) AS all_verified,
        o.status AS report_status,
        (o.status IN ('Completed', 'Delivered')) AS report_pdf_ready,
        o.delivered_at,
        b.invoice_total,
        b.paid_total,
        CASE
            WHEN b.invoice_total IS NULL THEN NULL
            ELSE b.invoice_total - b.paid_total
        END AS balance_due,
        0 AS attachments_count,
        false AS ai_used,
        (o.expected_date IS NOT NULL AND o.expected_date < CURRENT_DATE AND o.delivered_at IS NULL) AS is_overdue,
        CASE
            WHEN o.delivered_at IS NOT NULL OR o.status = 'Delivered' THEN 'delivered'
            WHEN o.status = 'Completed' THEN 'report_ready'
            WHEN COALESCE(a.expected_total, 0) > 0 AND a.verified_total = a.expected_total THEN 'approved'
            WHEN COALESCE(a.entered_total, 0) > 0 THEN 'for_approval'
            ELSE 'pending'
        END AS dashboard_state,
        a.tests
    FROM orders o
    LEFT JOIN analytes a ON a.order_id = o.id
    LEFT JOIN billing b ON b.order_id = o.id
    """,
    with_data=True,
)
