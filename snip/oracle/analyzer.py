"""Oracle diagnostics: AWR reports, ASH sessions, SQL plans and PDBs."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Sequence

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_ASH_LIMIT = 100
_NO_ROWS = "no rows in result set"

_SNAPSHOTS_QUERY = """
		SELECT snap_id, instance_number, begin_interval_time, end_interval_time
		FROM dba_hist_snapshot
		WHERE begin_interval_time >= :1 AND end_interval_time <= :2
		ORDER BY snap_id
	"""

_AWR_HTML_QUERY = """
		SELECT output
		FROM TABLE(DBMS_WORKLOAD_REPOSITORY.AWR_REPORT_HTML(
			:dbid, :inst_num, :bid, :eid
		))
	"""

_AWR_TEXT_QUERY = """
			SELECT output
			FROM TABLE(DBMS_WORKLOAD_REPOSITORY.AWR_REPORT_TEXT(
				:dbid, :inst_num, :bid, :eid
			))
		"""

_ASH_QUERY = """
		SELECT 
			sample_time,
			session_id,
			session_serial#,
			sql_id,
			event,
			wait_class,
			time_waited,
			session_state
		FROM v$active_session_history
		WHERE 1=1
	"""

_PLAN_QUERY = """
		SELECT 
			plan_hash_value,
			timestamp,
			operation,
			options,
			object_name,
			cost,
			cardinality,
			bytes
		FROM dba_hist_sql_plan
		WHERE sql_id = :sqlid
		ORDER BY timestamp DESC, id
		FETCH FIRST 1 ROW ONLY
	"""

_PLAN_DETAIL_QUERY = """
			SELECT 
				id,
				operation,
				options,
				object_name,
				cost,
				cardinality,
				bytes,
				time
			FROM dba_hist_sql_plan
			WHERE sql_id = :sqlid AND plan_hash_value = :plan_hash
			ORDER BY id
		"""

_SQL_STATS_QUERY = """
		SELECT 
			elapsed_time,
			cpu_time,
			buffer_gets,
			disk_reads,
			direct_writes,
			executions,
			rows_processed,
			first_load_time,
			last_load_time
		FROM v$sqlstats
		WHERE sql_id = :sqlid
	"""

_PDBS_QUERY = """
		SELECT 
			pdb_id,
			pdb_name,
			status,
			creation_scn,
			con_id,
			guid
		FROM cdb_pdbs
		ORDER BY pdb_name
	"""

_PDB_SPACE_QUERY = """
		SELECT 
			pdb_name,
			SUM(bytes)/1024/1024/1024 AS size_gb,
			SUM(bytes)/1024/1024 AS size_mb
		FROM cdb_data_files
		GROUP BY pdb_name
		ORDER BY size_gb DESC
	"""

_PDB_SESSION_QUERY = """
		SELECT 
			con_id,
			COUNT(*) AS session_count,
			SUM(CASE WHEN status = 'ACTIVE' THEN 1 ELSE 0 END) AS active_sessions
		FROM v$session
		WHERE con_id > 0
		GROUP BY con_id
		ORDER BY session_count DESC
	"""

_PDB_PERF_QUERY = """
		SELECT 
			con_id,
			SUM(physical_reads) AS total_physical_reads,
			SUM(logical_reads) AS total_logical_reads,
			SUM(executions) AS total_executions
		FROM v$sqlstats
		WHERE con_id > 0
		GROUP BY con_id
		ORDER BY total_physical_reads DESC
	"""

_SPECIFIC_PDB_QUERY = """
		SELECT 
			con_id,
			pdb_name,
			status
		FROM cdb_pdbs
		WHERE pdb_name = :pdb_name
	"""

_PDB_TABLES_QUERY = """
		SELECT 
			owner,
			table_name,
			num_rows,
			blocks,
			avg_row_len
		FROM cdb_tables
		WHERE con_id = :con_id
		AND owner NOT IN ('SYS', 'SYSTEM')
		ORDER BY num_rows DESC
		FETCH FIRST 20 ROWS ONLY
	"""


@dataclass
class Snapshot:
    """An AWR snapshot interval."""

    id: int = 0
    instance_number: int = 0
    begin_time: datetime | None = None
    end_time: datetime | None = None


@dataclass
class AWRReportRequest:
    """Parameters of an AWR report; report_type is "html" or "text"."""

    dbid: int = 0
    instance_id: int = 0
    begin_snapshot: int = 0
    end_snapshot: int = 0
    begin_time: datetime | None = None
    end_time: datetime | None = None
    report_type: str = ""


@dataclass
class ASHRequest:
    """Filters for an Active Session History query."""

    sql_id: str = ""
    serial: int = 0
    sid: int = 0
    begin_time: datetime | None = None
    end_time: datetime | None = None
    duration: timedelta = timedelta(0)


class OracleAnalysisError(RuntimeError):
    """Raised when an Oracle analysis cannot be carried out."""


def _fmt_time(value: datetime) -> str:
    return value.strftime(_TIME_FORMAT)


def _or_na(value: Any) -> str:
    return "N/A" if value is None else str(value)


def _or_zero(value: Any) -> int:
    return 0 if value is None else int(value)


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


def _has_nulls(row: Sequence[Any], *indexes: int) -> bool:
    return any(row[i] is None for i in indexes)


class OracleAnalyzer:
    """Runs diagnostic queries against an Oracle DB-API connection."""

    def __init__(self, db: Any) -> None:
        self._db = db

    def _query(self, query: str, params: Sequence[Any] = ()) -> list[tuple]:
        cursor = self._db.cursor()
        try:
            cursor.execute(query, list(params))
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def _query_one(self, query: str, params: Sequence[Any] = ()) -> tuple | None:
        cursor = self._db.cursor()
        try:
            cursor.execute(query, list(params))
            return cursor.fetchone()
        finally:
            cursor.close()

    def _try_query(self, query: str, params: Sequence[Any] = ()) -> list[tuple] | None:
        try:
            return self._query(query, params)
        except Exception:
            return None

    def get_snapshots(self, begin_time: datetime, end_time: datetime) -> list[Snapshot]:
        """Return the AWR snapshots lying inside the interval, by snapshot id."""
        try:
            rows = self._query(_SNAPSHOTS_QUERY, (begin_time, end_time))
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao buscar snapshots: {exc}") from exc
        snapshots = []
        for snap_id, instance_number, begin, end in rows:
            if snap_id is None or instance_number is None or begin is None or end is None:
                raise OracleAnalysisError("erro ao buscar snapshots: valor nulo")
            snapshots.append(Snapshot(snap_id, instance_number, begin, end))
        return snapshots

    def generate_awr_report(self, req: AWRReportRequest) -> str:
        """Produce an AWR report, picking snapshots from the time range if needed."""
        if req.begin_snapshot == 0 or req.end_snapshot == 0:
            snapshots = self.get_snapshots(req.begin_time, req.end_time)
            if len(snapshots) < 2:
                raise OracleAnalysisError("é necessário pelo menos 2 snapshots no período")
            req = replace(
                req, begin_snapshot=snapshots[0].id, end_snapshot=snapshots[-1].id
            )

        query = _AWR_TEXT_QUERY if req.report_type == "text" else _AWR_HTML_QUERY
        params = (req.dbid, req.instance_id, req.begin_snapshot, req.end_snapshot)
        try:
            row = self._query_one(query, params)
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao gerar relatório AWR: {exc}") from exc
        if row is None or row[0] is None:
            raise OracleAnalysisError(f"erro ao gerar relatório AWR: {_NO_ROWS}")
        return str(row[0])

    def analyze_ash(self, req: ASHRequest) -> str:
        """Report sampled active sessions matching the request, newest first."""
        query = _ASH_QUERY
        args: list[Any] = []
        if req.sql_id:
            query += " AND sql_id = :sqlid"
            args.append(req.sql_id)
        if req.sid > 0:
            query += " AND session_id = :sid"
            args.append(req.sid)
        if req.serial > 0:
            query += " AND session_serial# = :serial"
            args.append(req.serial)
        if req.begin_time is not None:
            query += " AND sample_time >= :begin_time"
            args.append(req.begin_time)
        if req.end_time is not None:
            query += " AND sample_time <= :end_time"
            args.append(req.end_time)
        query += " ORDER BY sample_time DESC"

        try:
            rows = self._query(query, args)
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao consultar ASH: {exc}") from exc

        parts = ["# Análise ASH (Active Session History)\n\n", "## Sessões Ativas\n\n"]
        count = 0
        for row in rows:
            if _has_nulls(row, 0, 1, 2, 6):
                continue
            sample_time, session_id, serial, sql_id, event, wait_class, waited, _state = row
            parts.append(f"### Sessão {session_id} (Serial: {serial})\n")
            parts.append(f"- **Tempo:** {_fmt_time(sample_time)}\n")
            if sql_id is not None:
                parts.append(f"- **SQL ID:** {sql_id}\n")
            if event is not None:
                parts.append(f"- **Evento:** {event}\n")
            if wait_class is not None:
                parts.append(f"- **Classe de Wait:** {wait_class}\n")
            parts.append(f"- **Tempo de Wait:** {waited} ms\n")
            parts.append("\n")
            count += 1
            if count >= _ASH_LIMIT:
                parts.append(f"\n... e mais resultados (limitado a {_ASH_LIMIT})\n")
                break
        return "".join(parts)

    def get_execution_plan(self, sql_id: str) -> str:
        """Describe the most recent AWR execution plan of a SQL id."""
        parts = [f"# Plano de Execução - SQL ID: {sql_id}\n\n"]
        try:
            rows = self._query(_PLAN_QUERY, (sql_id,))
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao buscar plano de execução: {exc}") from exc
        if not rows:
            return "".join(parts)

        first = rows[0]
        if _has_nulls(first, 0, 1):
            raise OracleAnalysisError("erro ao buscar plano de execução: valor nulo")
        plan_hash_value, timestamp = first[0], first[1]
        parts.append(f"**Plan Hash Value:** {plan_hash_value}\n")
        parts.append(f"**Timestamp:** {_fmt_time(timestamp)}\n\n")

        details = self._try_query(_PLAN_DETAIL_QUERY, (sql_id, plan_hash_value))
        if details is not None:
            parts.append("## Detalhes do Plano\n\n")
            parts.append("| ID | Operação | Objeto | Custo | Cardinalidade |\n")
            parts.append("|----|----------|--------|-------|---------------|\n")
            for row in details:
                if row[0] is None:
                    continue
                step_id, op, opts, obj, cost, card = row[:6]
                operation = op or ""
                if opts is not None:
                    operation += " " + opts
                parts.append(
                    f"| {step_id} | {operation} | {_or_na(obj)} | "
                    f"{_or_zero(cost)} | {_or_zero(card)} |\n"
                )
        return "".join(parts)

    def get_sql_statistics(self, sql_id: str) -> str:
        """Summarise the cursor statistics of a SQL id."""
        try:
            row = self._query_one(_SQL_STATS_QUERY, (sql_id,))
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao buscar estatísticas SQL: {exc}") from exc
        if row is None:
            raise OracleAnalysisError(f"erro ao buscar estatísticas SQL: {_NO_ROWS}")
        if None in row:
            raise OracleAnalysisError("erro ao buscar estatísticas SQL: valor nulo")
        (elapsed, cpu, buffer_gets, disk_reads, _direct_writes,
         executions, rows_processed, first_load, last_load) = row
        return "".join([
            f"# Estatísticas SQL - SQL ID: {sql_id}\n\n",
            "## Métricas de Performance\n\n",
            f"- **Tempo Total:** {_trunc_div(int(elapsed), 1_000_000)} ms\n",
            f"- **Tempo CPU:** {_trunc_div(int(cpu), 1_000_000)} ms\n",
            f"- **Buffer Gets:** {buffer_gets}\n",
            f"- **Disk Reads:** {disk_reads}\n",
            f"- **Execuções:** {executions}\n",
            f"- **Linhas Processadas:** {rows_processed}\n",
            f"- **Primeira Execução:** {_fmt_time(first_load)}\n",
            f"- **Última Execução:** {_fmt_time(last_load)}\n",
        ])

    def analyze_pdbs(self) -> str:
        """Report pluggable databases with their space, sessions and load."""
        try:
            rows = self._query(_PDBS_QUERY)
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao consultar PDBs: {exc}") from exc

        parts = [
            "# Análise de Pluggable Databases (PDBs)\n\n",
            "## PDBs Disponíveis\n\n",
            "| PDB ID | Nome | Status | CON ID | GUID |\n",
            "|--------|------|--------|--------|------|\n",
        ]
        for row in rows:
            if _has_nulls(row, 0, 1, 2, 4, 5):
                continue
            pdb_id, name, status, _scn, con_id, guid = row
            parts.append(f"| {pdb_id} | {name} | {status} | {con_id} | {guid} |\n")

        parts.append("\n## Uso de Espaço por PDB\n\n")
        space_rows = self._try_query(_PDB_SPACE_QUERY)
        if space_rows is not None:
            parts.append("| PDB | Tamanho (GB) | Tamanho (MB) |\n")
            parts.append("|-----|---------------|--------------|\n")
            for name, size_gb, size_mb in space_rows:
                if size_gb is None or size_mb is None:
                    continue
                parts.append(
                    f"| {_or_na(name)} | {float(size_gb):.2f} | {float(size_mb):.2f} |\n"
                )

        parts.append("\n## Sessões por PDB\n\n")
        session_rows = self._try_query(_PDB_SESSION_QUERY)
        if session_rows is not None:
            parts.append("| CON ID | Total Sessões | Sessões Ativas |\n")
            parts.append("|--------|---------------|----------------|\n")
            for row in session_rows:
                if None in row:
                    continue
                con_id, total, active = row
                parts.append(f"| {con_id} | {total} | {active} |\n")

        parts.append("\n## Métricas de Performance por PDB\n\n")
        perf_rows = self._try_query(_PDB_PERF_QUERY)
        if perf_rows is not None:
            parts.append("| CON ID | Physical Reads | Logical Reads | Execuções |\n")
            parts.append("|--------|----------------|---------------|------------|\n")
            for con_id, physical, logical, executions in perf_rows:
                if con_id is None:
                    continue
                parts.append(
                    f"| {con_id} | {_or_zero(physical)} | {_or_zero(logical)} | "
                    f"{_or_zero(executions)} |\n"
                )
        return "".join(parts)

    def analyze_specific_pdb(self, pdb_name: str) -> str:
        """Report one pluggable database and its largest user tables."""
        parts = [f"# Análise Detalhada do PDB: {pdb_name}\n\n"]
        try:
            row = self._query_one(_SPECIFIC_PDB_QUERY, (pdb_name,))
        except Exception as exc:
            raise OracleAnalysisError(f"PDB não encontrado: {exc}") from exc
        if row is None:
            raise OracleAnalysisError(f"PDB não encontrado: {_NO_ROWS}")
        if None in row:
            raise OracleAnalysisError("PDB não encontrado: valor nulo")
        con_id, _name, status = row
        parts.append(f"**CON ID:** {con_id}\n")
        parts.append(f"**Status:** {status}\n\n")

        parts.append("## Tabelas no PDB\n\n")
        table_rows = self._try_query(_PDB_TABLES_QUERY, (con_id,))
        if table_rows is not None:
            parts.append("| Owner | Tabela | Linhas | Blocos | Avg Row Len |\n")
            parts.append("|-------|--------|--------|--------|-------------|\n")
            for owner, table, num_rows, blocks, avg_row_len in table_rows:
                if owner is None or table is None:
                    continue
                parts.append(
                    f"| {owner} | {table} | {_or_zero(num_rows)} | {_or_zero(blocks)} | "
                    f"{_or_zero(avg_row_len)} |\n"
                )
        return "".join(parts)