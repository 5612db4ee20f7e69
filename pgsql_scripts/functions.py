# pgsql_scripts/functions.py
from alembic_utils.pg_function import PGFunction

check_order_status_consistency_func = PGFunction(
    schema="public",
    signature="check_order_status_consistency(p_order_id integer)",
    definition="""
    -- 검체 채취 기록과 오더 상태의 일관성을 점검합니다.
    -- (labdesk.domains.orders.status.check_status_consistency 와 같은 규칙)
    RETURNS TABLE(
        order_id integer,
        current_status text,
        sample_collected boolean,
        is_consistent boolean,
        recommended_status text
    ) AS $$
    BEGIN
        RETURN QUERY
        SELECT
            o.id,
            o.status::text,
            (o.sample_collected_at IS NOT NULL AND o.sample_collected_by IS NOT NULL),
            CASE
                WHEN o.sample_collected_at IS NOT NULL AND o.sample_collected_by IS NOT NULL
                     AND o.status IN ('Order Created', 'Pending Collection') THEN false
                WHEN (o.sample_collected_at IS NULL OR o.sample_collected_by IS NULL)
                     AND o.status IN ('Sample Collected', 'In Progress') THEN false
                ELSE true
            END,
            CASE
                WHEN o.sample_collected_at IS NOT NULL AND o.sample_collected_by IS NOT NULL
                     AND o.status IN ('Order Created', 'Pending Collection') THEN 'Sample Collected'
                WHEN (o.sample_collected_at IS NULL OR o.sample_collected_by IS NULL)
                     AND o.status IN ('Sample Collected', 'In Progress') THEN 'Pending Collection'
                ELSE o.status::text
            END
        FROM orders o
        WHERE o.id = p_order_id;
    END;
    $$ LANGUAGE plpgsql STABLE;
    """
)
