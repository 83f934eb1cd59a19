"""Catalog queries used by CatalogSource.

All queries take the schema name as $1 and, where relevant, the table name
as $2. Column aliases match the row keys the schema builder expects.
"""

# ============================================================================
# Structural queries
# ============================================================================

LIST_TABLES = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1
    AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

GET_COLUMNS = """
    SELECT
        c.column_name AS name,
        c.data_type,
        c.is_nullable = 'YES' AS nullable,
        c.column_default AS "default",
        c.character_maximum_length AS char_len,
        c.numeric_precision AS num_precision,
        c.numeric_scale AS num_scale
    FROM information_schema.columns c
    WHERE c.table_schema = $1
    AND c.table_name = $2
    ORDER BY c.ordinal_position
"""

GET_PRIMARY_KEY = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON kcu.constraint_name = tc.constraint_name
        AND kcu.table_schema = tc.table_schema
        AND kcu.table_name = tc.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
    AND tc.table_schema = $1
    AND tc.table_name = $2
    ORDER BY kcu.ordinal_position
"""

# One row per column pair of each foreign key, in key order. Constraint names
# are only unique per table, so rows are matched by table oid, not by name.
GET_FOREIGN_KEYS = """
    SELECT
        a.attname AS "column",
        rc.relname AS referenced_table,
        ra.attname AS referenced_column,
        CASE co.confupdtype
            WHEN 'r' THEN 'RESTRICT'
            WHEN 'c' THEN 'CASCADE'
            WHEN 'n' THEN 'SET NULL'
            WHEN 'd' THEN 'SET DEFAULT'
            ELSE 'NO ACTION'
        END AS update_rule,
        CASE co.confdeltype
            WHEN 'r' THEN 'RESTRICT'
            WHEN 'c' THEN 'CASCADE'
            WHEN 'n' THEN 'SET NULL'
            WHEN 'd' THEN 'SET DEFAULT'
            ELSE 'NO ACTION'
        END AS delete_rule
    FROM pg_constraint co
    JOIN pg_class c ON c.oid = co.conrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_class rc ON rc.oid = co.confrelid
    CROSS JOIN LATERAL unnest(co.conkey, co.confkey)
        WITH ORDINALITY AS k(attnum, ref_attnum, ord)
    JOIN pg_attribute a ON a.attrelid = co.conrelid AND a.attnum = k.attnum
    JOIN pg_attribute ra ON ra.attrelid = co.confrelid AND ra.attnum = k.ref_attnum
    WHERE co.contype = 'f'
    AND n.nspname = $1
    AND c.relname = $2
    ORDER BY co.conname, k.ord
"""

GET_UNIQUE_CONSTRAINTS = """
    SELECT
        tc.constraint_name AS name,
        array_agg(kcu.column_name::text ORDER BY kcu.ordinal_position) AS columns
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON kcu.constraint_name = tc.constraint_name
        AND kcu.table_schema = tc.table_schema
        AND kcu.table_name = tc.table_name
    WHERE tc.constraint_type = 'UNIQUE'
    AND tc.table_schema = $1
    AND tc.table_name = $2
    GROUP BY tc.constraint_name
    ORDER BY tc.constraint_name
"""

GET_CHECK_CONSTRAINTS = """
    SELECT
        co.conname AS name,
        pg_get_expr(co.conbin, co.conrelid) AS definition
    FROM pg_constraint co
    JOIN pg_class c ON c.oid = co.conrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE co.contype = 'c'
    AND n.nspname = $1
    AND c.relname = $2
    ORDER BY co.conname
"""

GET_REFERENCING_TABLES = """
    SELECT DISTINCT cl.relname AS table_name
    FROM pg_constraint co
    JOIN pg_class cl ON cl.oid = co.conrelid
    WHERE co.contype = 'f'
    AND co.confrelid = (
        SELECT c.oid
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = $1
        AND c.relname = $2
        AND c.relkind IN ('r', 'p')
    )
    ORDER BY cl.relname
"""

# ============================================================================
# Enhanced metadata
# ============================================================================

GET_TABLE_COMMENT = """
    SELECT obj_description(c.oid, 'pg_class') AS table_comment
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = $1
    AND c.relname = $2
"""

GET_COLUMN_COMMENTS = """
    SELECT
        a.attname AS name,
        col_description(a.attrelid, a.attnum) AS comment,
        CASE WHEN t.typtype = 'e' THEN
            (SELECT array_agg(e.enumlabel::text ORDER BY e.enumsortorder)
             FROM pg_enum e
             WHERE e.enumtypid = t.oid)
        ELSE NULL END AS enum_values
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_attribute a ON a.attrelid = c.oid
    JOIN pg_type t ON t.oid = a.atttypid
    WHERE n.nspname = $1
    AND c.relname = $2
    AND a.attnum > 0
    AND NOT a.attisdropped
    ORDER BY a.attnum
"""

GET_TRIGGERS = """
    SELECT
        t.tgname AS name,
        pg_get_triggerdef(t.oid, true) AS definition
    FROM pg_trigger t
    JOIN pg_class c ON c.oid = t.tgrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = $1
    AND c.relname = $2
    AND NOT t.tgisinternal
    ORDER BY t.tgname
"""
