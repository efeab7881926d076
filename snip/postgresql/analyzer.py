"""PostgreSQL diagnostics: pg_stat views, plans, replication, locks and bloat."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Sequence

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_NO_ROWS = "no rows in result set"

_DATABASE_STATS_QUERY = """
		SELECT 
			datname,
			numbackends,
			xact_commit,
			xact_rollback,
			blks_read,
			blks_hit,
			tup_returned,
			tup_fetched,
			tup_inserted,
			tup_updated,
			tup_deleted
		FROM pg_stat_database
		WHERE datname NOT IN ('template0', 'template1', 'postgres')
		ORDER BY blks_hit DESC
	"""

_TABLE_STATS_QUERY = """
		SELECT 
			schemaname,
			tablename,
			seq_scan,
			seq_tup_read,
			idx_scan,
			idx_tup_fetch,
			n_tup_ins,
			n_tup_upd,
			n_tup_del,
			n_live_tup,
			n_dead_tup,
			last_vacuum,
			last_autovacuum,
			last_analyze,
			last_autoanalyze
		FROM pg_stat_user_tables
		ORDER BY seq_scan + idx_scan DESC
		LIMIT 20
	"""

_INDEX_STATS_QUERY = """
		SELECT 
			schemaname,
			tablename,
			indexname,
			idx_scan,
			idx_tup_read,
			idx_tup_fetch
		FROM pg_stat_user_indexes
		ORDER BY idx_scan ASC
		LIMIT 20
	"""

_QUERY_STATS_QUERY = """
		SELECT 
			query,
			calls,
			total_exec_time,
			mean_exec_time,
			max_exec_time,
			min_exec_time,
			stddev_exec_time
		FROM pg_stat_statements
		ORDER BY total_exec_time DESC
		LIMIT 20
	"""

_ACTIVITY_QUERY = """
		SELECT 
			pid,
			usename,
			application_name,
			client_addr,
			state,
			query_start,
			state_change,
			wait_event_type,
			wait_event,
			query
		FROM pg_stat_activity
		WHERE pid != pg_backend_pid()
		ORDER BY query_start
	"""

_REPLICATION_QUERY = """
		SELECT 
			client_addr,
			state,
			sent_lsn,
			write_lsn,
			flush_lsn,
			replay_lsn,
			sync_priority,
			sync_state,
			pg_wal_lsn_diff(pg_current_wal_lsn(), sent_lsn) as sent_lag,
			pg_wal_lsn_diff(pg_current_wal_lsn(), write_lsn) as write_lag,
			pg_wal_lsn_diff(pg_current_wal_lsn(), flush_lsn) as flush_lag,
			pg_wal_lsn_diff(pg_current_wal_lsn(), replay_lsn) as replay_lag
		FROM pg_stat_replication
	"""

_SLOTS_QUERY = """
		SELECT 
			slot_name,
			plugin,
			slot_type,
			datoid,
			database,
			temporary,
			active,
			active_pid,
			xmin,
			catalog_xmin,
			restart_lsn,
			confirmed_flush_lsn
		FROM pg_replication_slots
	"""

_LOCKS_QUERY = """
		SELECT 
			l.locktype,
			l.database,
			l.relation::regclass,
			l.page,
			l.tuple,
			l.virtualxid,
			l.transactionid,
			l.classid,
			l.objid,
			l.objsubid,
			l.virtualtransaction,
			l.pid,
			l.mode,
			l.granted,
			a.usename,
			a.query,
			a.query_start,
			age(now(), a.query_start) AS age
		FROM pg_locks l
		LEFT JOIN pg_stat_activity a ON l.pid = a.pid
		WHERE l.database = (SELECT oid FROM pg_database WHERE datname = current_database())
		ORDER BY a.query_start
	"""

_BLOCKING_QUERY = """
		SELECT 
			blocked_locks.pid AS blocked_pid,
			blocked_activity.usename AS blocked_user,
			blocking_locks.pid AS blocking_pid,
			blocking_activity.usename AS blocking_user,
			blocked_activity.query AS blocked_statement,
			blocking_activity.query AS blocking_statement
		FROM pg_catalog.pg_locks blocked_locks
		JOIN pg_catalog.pg_stat_activity blocked_activity ON blocked_activity.pid = blocked_locks.pid
		JOIN pg_catalog.pg_locks blocking_locks 
			ON blocking_locks.locktype = blocked_locks.locktype
			AND blocking_locks.database IS NOT DISTINCT FROM blocked_locks.database
			AND blocking_locks.relation IS NOT DISTINCT FROM blocked_locks.relation
			AND blocking_locks.page IS NOT DISTINCT FROM blocked_locks.page
			AND blocking_locks.tuple IS NOT DISTINCT FROM blocked_locks.tuple
			AND blocking_locks.virtualxid IS NOT DISTINCT FROM blocked_locks.virtualxid
			AND blocking_locks.transactionid IS NOT DISTINCT FROM blocked_locks.transactionid
			AND blocking_locks.classid IS NOT DISTINCT FROM blocked_locks.classid
			AND blocking_locks.objid IS NOT DISTINCT FROM blocked_locks.objid
			AND blocking_locks.objsubid IS NOT DISTINCT FROM blocked_locks.objsubid
			AND blocking_locks.pid != blocked_locks.pid
		JOIN pg_catalog.pg_stat_activity blocking_activity ON blocking_activity.pid = blocking_locks.pid
		WHERE NOT blocked_locks.granted
	"""

_FRAGMENTATION_QUERY = """
		SELECT 
			schemaname,
			tablename,
			pg_size_pretty(pg_total_relation_size(schemaname||'.'||tablename)) AS total_size,
			pg_size_pretty(pg_relation_size(schemaname||'.'||tablename)) AS table_size,
			pg_size_pretty(pg_indexes_size(schemaname||'.'||tablename)) AS indexes_size,
			pg_total_relation_size(schemaname||'.'||tablename) - pg_relation_size(schemaname||'.'||tablename) - COALESCE(pg_indexes_size(schemaname||'.'||tablename), 0) AS bloat_size,
			n_dead_tup,
			n_live_tup,
			CASE 
				WHEN n_live_tup > 0 
				THEN ROUND(100.0 * n_dead_tup / (n_live_tup + n_dead_tup), 2)
				ELSE 0
			END AS dead_tuple_percent,
			last_vacuum,
			last_autovacuum,
			last_analyze,
			last_autoanalyze
		FROM pg_stat_user_tables
		WHERE n_dead_tup > 0
		ORDER BY bloat_size DESC
		LIMIT 20
	"""


class PostgreSQLAnalysisError(RuntimeError):
    """Raised when a PostgreSQL analysis cannot be carried out."""


def _or_na(value: Any) -> str:
    return "N/A" if value is None else str(value)


def _or_zero(value: Any) -> int:
    return 0 if value is None else int(value)


def _or_zero_float(value: Any) -> float:
    return 0.0 if value is None else float(value)


def _has_nulls(row: Sequence[Any], *indexes: int) -> bool:
    return any(row[i] is None for i in indexes)


def _truncate(value: Any, limit: int) -> str:
    if value is None:
        return "N/A"
    text = str(value)
    return text[:limit] + "..." if len(text) > limit else text


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


class PostgreSQLAnalyzer:
    """Runs diagnostic queries against a PostgreSQL DB-API connection."""

    def __init__(self, db: Any) -> None:
        self._db = db

    def _query(self, query: str, params: Sequence[Any] = ()) -> list[tuple]:
        cursor = self._db.cursor()
        try:
            if params:
                cursor.execute(query, list(params))
            else:
                cursor.execute(query)
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def _query_one(self, query: str) -> tuple | None:
        cursor = self._db.cursor()
        try:
            cursor.execute(query)
            return cursor.fetchone()
        finally:
            cursor.close()

    def _try_query(self, query: str) -> list[tuple] | None:
        try:
            return self._query(query)
        except Exception:
            return None

    def _rows_or_raise(self, query: str, message: str) -> list[tuple]:
        try:
            return self._query(query)
        except Exception as exc:
            raise PostgreSQLAnalysisError(f"{message}: {exc}") from exc

    def analyze_pg_stat(
        self,
        stat_type: str,
        begin_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> str:
        """Report one family of pg_stat views: database, table, index, query or activity."""
        handlers = {
            "database": self._analyze_database_stats,
            "table": self._analyze_table_stats,
            "index": self._analyze_index_stats,
            "query": self._analyze_query_stats,
            "activity": self._analyze_activity,
        }
        handler = handlers.get(stat_type)
        if handler is None:
            return f"Análise de pg_stat tipo '{stat_type}' ainda não implementada"
        return handler()

    def _analyze_database_stats(self) -> str:
        rows = self._rows_or_raise(_DATABASE_STATS_QUERY, "erro ao consultar stats de banco")
        parts = [
            "# Estatísticas de Banco de Dados\n\n",
            "| Database | Backends | Commits | Rollbacks | Blks Read | Blks Hit |\n",
            "|----------|----------|---------|-----------|-----------|----------|\n",
        ]
        for row in rows:
            if None in row:
                continue
            name, backends, commits, rollbacks, blks_read, blks_hit = row[:6]
            parts.append(
                f"| {name} | {backends} | {commits} | {rollbacks} | {blks_read} | {blks_hit} |\n"
            )
        return "".join(parts)

    def _analyze_table_stats(self) -> str:
        rows = self._rows_or_raise(_TABLE_STATS_QUERY, "erro ao consultar stats de tabelas")
        parts = [
            "# Estatísticas de Tabelas\n\n",
            "| Schema | Tabela | Seq Scan | Index Scan | Inserts | Updates | Deletes "
            "| Live Tuples |\n",
            "|--------|--------|----------|------------|---------|---------|---------"
            "|-------------|\n",
        ]
        for row in rows:
            if _has_nulls(row, *range(11)):
                continue
            (schema, table, seq_scan, _seq_read, idx_scan, _idx_fetch,
             inserts, updates, deletes, live, _dead) = row[:11]
            parts.append(
                f"| {schema} | {table} | {seq_scan} | {idx_scan} | {inserts} | "
                f"{updates} | {deletes} | {live} |\n"
            )
        return "".join(parts)

    def _analyze_index_stats(self) -> str:
        rows = self._rows_or_raise(_INDEX_STATS_QUERY, "erro ao consultar stats de índices")
        parts = [
            "# Estatísticas de Índices\n\n",
            "## Índices Não Utilizados\n\n",
            "| Schema | Tabela | Índice | Scans | Tuples Read | Tuples Fetched |\n",
            "|--------|--------|--------|-------|-------------|----------------|\n",
        ]
        for row in rows:
            if None in row:
                continue
            schema, table, index, scans, tup_read, tup_fetch = row
            parts.append(
                f"| {schema} | {table} | {index} | {scans} | {tup_read} | {tup_fetch} |\n"
            )
        return "".join(parts)

    def _analyze_query_stats(self) -> str:
        rows = self._rows_or_raise(
            _QUERY_STATS_QUERY,
            "erro ao consultar pg_stat_statements (pode não estar habilitado)",
        )
        parts = [
            "# Estatísticas de Queries\n\n",
            "## Top Queries por Tempo Total\n\n",
            "| Query | Chamadas | Tempo Total (ms) | Tempo Médio (ms) | Tempo Máx (ms) |\n",
            "|-------|----------|------------------|------------------|----------------|\n",
        ]
        for row in rows:
            if None in row:
                continue
            text, calls, total, mean, maximum, _minimum, _stddev = row
            parts.append(
                f"| {_truncate(text, 100)} | {calls} | {float(total):.2f} | "
                f"{float(mean):.2f} | {float(maximum):.2f} |\n"
            )
        return "".join(parts)

    def _analyze_activity(self) -> str:
        rows = self._rows_or_raise(_ACTIVITY_QUERY, "erro ao consultar atividade")
        parts = [
            "# Atividade Atual\n\n",
            "| PID | Usuário | Aplicação | Estado | Wait Event | Query |\n",
            "|-----|---------|-----------|--------|------------|-------|\n",
        ]
        for row in rows:
            if _has_nulls(row, 0, 4):
                continue
            (pid, user, application, _client, state, _start, _change,
             _wait_type, wait_event, query) = row
            parts.append(
                f"| {pid} | {_or_na(user)} | {_or_na(application)} | {state} | "
                f"{_or_na(wait_event)} | {_truncate(query, 50)} |\n"
            )
        return "".join(parts)

    def get_execution_plan(self, query: str) -> str:
        """Run EXPLAIN ANALYZE on the query and return its JSON plan."""
        explain = "EXPLAIN (FORMAT JSON, ANALYZE, BUFFERS) " + query
        try:
            row = self._query_one(explain)
        except Exception as exc:
            raise PostgreSQLAnalysisError(f"erro ao obter plano de execução: {exc}") from exc
        if row is None:
            raise PostgreSQLAnalysisError(f"erro ao obter plano de execução: {_NO_ROWS}")
        plan = row[0]
        if plan is None:
            raise PostgreSQLAnalysisError("erro ao obter plano de execução: valor nulo")
        plan_json = plan if isinstance(plan, str) else json.dumps(plan, indent=2)
        return "".join([
            "# Plano de Execução PostgreSQL\n\n",
            "## JSON do Plano de Execução\n\n",
            "```json\n",
            plan_json,
            "\n```\n",
        ])

    def analyze_replication(self) -> str:
        """Report streaming replicas with their lag, and replication slots."""
        rows = self._rows_or_raise(_REPLICATION_QUERY, "erro ao consultar replicação")
        parts = [
            "# Análise de Replicação PostgreSQL\n\n",
            "## Replicas de Streaming\n\n",
            "| Cliente | Estado | Sync State | Sent Lag | Write Lag | Flush Lag | Replay Lag |\n",
            "|---------|--------|------------|----------|-----------|-----------|------------|\n",
        ]
        for row in rows:
            (client, state, _sent, _write, _flush, _replay, _priority, sync_state,
             sent_lag, write_lag, flush_lag, replay_lag) = row
            parts.append(
                f"| {_or_na(client)} | {_or_na(state)} | {_or_na(sync_state)} | "
                f"{_or_zero(sent_lag)} | {_or_zero(write_lag)} | {_or_zero(flush_lag)} | "
                f"{_or_zero(replay_lag)} |\n"
            )

        parts.append("\n## Slots de Replicação\n\n")
        slot_rows = self._try_query(_SLOTS_QUERY)
        if slot_rows is not None:
            parts.append("| Slot Name | Plugin | Type | Database | Active | Restart LSN |\n")
            parts.append("|-----------|--------|------|----------|--------|-------------|\n")
            for row in slot_rows:
                if _has_nulls(row, 5, 6):
                    continue
                (name, plugin, slot_type, _datoid, database, _temporary, active,
                 _active_pid, _xmin, _catalog_xmin, restart_lsn, _confirmed) = row
                parts.append(
                    f"| {_or_na(name)} | {_or_na(plugin)} | {_or_na(slot_type)} | "
                    f"{_or_na(database)} | {_bool_text(active)} | {_or_na(restart_lsn)} |\n"
                )
        return "".join(parts)

    def analyze_locks(self) -> str:
        """Report the locks held in the current database and who blocks whom."""
        rows = self._rows_or_raise(_LOCKS_QUERY, "erro ao consultar locks")
        parts = [
            "# Análise de Locks e Bloqueios PostgreSQL\n\n",
            "## Locks Ativos\n\n",
            "| PID | Usuário | Tipo | Relação | Modo | Concedido | Query | Idade |\n",
            "|-----|---------|------|---------|------|-----------|-------|-------|\n",
        ]
        for row in rows:
            if row[13] is None:
                continue
            lock_type, relation, pid, mode, granted = row[0], row[2], row[11], row[12], row[13]
            user, query, age = row[14], row[15], row[17]
            parts.append(
                f"| {_or_zero(pid)} | {_or_na(user)} | {_or_na(lock_type)} | "
                f"{_or_na(relation)} | {_or_na(mode)} | {_bool_text(granted)} | "
                f"{_truncate(query, 50)} | {_or_na(age)} |\n"
            )

        parts.append("\n## Bloqueios Detectados\n\n")
        blocking_rows = self._try_query(_BLOCKING_QUERY)
        if blocking_rows is not None:
            parts.append(
                "| Bloqueado (PID) | Bloqueador (PID) | Query Bloqueada | Query Bloqueadora |\n"
            )
            parts.append(
                "|-----------------|------------------|-----------------|-------------------|\n"
            )
            for row in blocking_rows:
                if _has_nulls(row, 0, 2):
                    continue
                blocked_pid, blocked_user, blocking_pid, blocking_user, blocked, blocking = row
                parts.append(
                    f"| {blocked_pid} ({_or_na(blocked_user)}) | "
                    f"{blocking_pid} ({_or_na(blocking_user)}) | "
                    f"{_truncate(blocked, 50)} | {_truncate(blocking, 50)} |\n"
                )
        return "".join(parts)

    def analyze_fragmentation(self) -> str:
        """Report tables with dead tuples, largest bloat first."""
        rows = self._rows_or_raise(_FRAGMENTATION_QUERY, "erro ao consultar fragmentação")
        parts = [
            "# Análise de Fragmentação PostgreSQL\n\n",
            "## Tabelas com Fragmentação\n\n",
            "| Schema | Tabela | Tamanho Total | Tamanho Tabela | Dead Tuples | % Dead "
            "| Último Vacuum |\n",
            "|--------|--------|---------------|----------------|-------------|--------"
            "|---------------|\n",
        ]
        for row in rows:
            (schema, table, total_size, table_size, _indexes_size, _bloat, dead, _live,
             dead_percent, last_vacuum, last_autovacuum, _analyze, _autoanalyze) = row
            if last_vacuum is not None:
                vacuum_text = last_vacuum.strftime(_TIME_FORMAT)
            elif last_autovacuum is not None:
                vacuum_text = "Auto: " + last_autovacuum.strftime(_TIME_FORMAT)
            else:
                vacuum_text = "Nunca"
            parts.append(
                f"| {_or_na(schema)} | {_or_na(table)} | {_or_na(total_size)} | "
                f"{_or_na(table_size)} | {_or_zero(dead)} | "
                f"{_or_zero_float(dead_percent):.2f}% | {vacuum_text} |\n"
            )
        return "".join(parts)