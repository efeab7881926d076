"""PostgreSQL diagnostics: pg_stat views, plans, replication, locks and bloat."""