"""Turns plain-language requests into AWR and ASH parameters with an AI model."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Protocol, Sequence

from snip.oracle.analyzer import ASHRequest, AWRReportRequest, OracleAnalysisError, Snapshot

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_ZERO_TIME = "0001-01-01 00:00:00"
_STRICT_TIME = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}")

_FLAGS = re.ASCII


def _string_field(name: str) -> re.Pattern[str]:
    return re.compile(rf'"{name}"\s*:\s*"([^"]+)"', _FLAGS)


def _number_field(name: str) -> re.Pattern[str]:
    return re.compile(rf'"{name}"\s*:\s*([0-9]+)', _FLAGS)


_BEGIN_TIME = _string_field("begin_time")
_END_TIME = _string_field("end_time")
_BEGIN_SNAPSHOT = _number_field("begin_snapshot")
_END_SNAPSHOT = _number_field("end_snapshot")
_REPORT_TYPE = _string_field("report_type")
_SQL_ID = _string_field("sql_id")
_SID = _number_field("sid")
_SERIAL = _number_field("serial")
_DURATION_MINUTES = _number_field("duration_minutes")

_LAST_HOURS = re.compile(r"últim[ao]s?\s+([0-9]+)\s+horas?")
_SNAP_RANGE = re.compile(r"snap\s+([0-9]+)\s+e\s+([0-9]+)")
_MANUAL_SQL_ID = re.compile(r"sql\s+id\s+([a-z0-9]{13})")
_MANUAL_SID = re.compile(r"sid\s+([0-9]+)")
_MANUAL_SERIAL = re.compile(r"serial\s+([0-9]+)")
_LAST_MINUTES = re.compile(r"últim[ao]s?\s+([0-9]+)\s+minutos?")

_AWR_PROMPT = """Você é um especialista em Oracle Database. Interprete a seguinte requisição do usuário e extraia os parâmetros para gerar um relatório AWR.

Requisição do usuário: "{request}"

Snapshots disponíveis:
{snapshots}

Retorne APENAS um JSON com os seguintes campos (use null para valores não especificados):
{{
  "begin_time": "YYYY-MM-DD HH:MM:SS" ou null,
  "end_time": "YYYY-MM-DD HH:MM:SS" ou null,
  "begin_snapshot": número ou null,
  "end_snapshot": número ou null,
  "duration_hours": número de horas ou null,
  "report_type": "html" ou "text"
}}

Exemplos de interpretação:
- "relatório das últimas 2 horas" -> duration_hours: 2, end_time: agora
- "relatório de ontem" -> begin_time: início de ontem, end_time: fim de ontem
- "relatório entre os snaps 100 e 200" -> begin_snapshot: 100, end_snapshot: 200
- "relatório de hoje de manhã" -> begin_time: início de hoje, end_time: meio-dia

Retorne APENAS o JSON, sem explicações."""

_ASH_PROMPT = """Você é um especialista em Oracle Database. Interprete a seguinte requisição do usuário e extraia os parâmetros para análise ASH.

Requisição do usuário: "{request}"

Retorne APENAS um JSON com os seguintes campos (use null para valores não especificados):
{{
  "sql_id": "string" ou null,
  "sid": número ou null,
  "serial": número ou null,
  "begin_time": "YYYY-MM-DD HH:MM:SS" ou null,
  "end_time": "YYYY-MM-DD HH:MM:SS" ou null,
  "duration_minutes": número de minutos ou null
}}

Exemplos:
- "sessão 123" -> sid: 123
- "SQL ID abc123def" -> sql_id: "abc123def"
- "últimos 30 minutos" -> duration_minutes: 30
- "sessão 456 serial 789" -> sid: 456, serial: 789

Retorne APENAS o JSON, sem explicações."""

_RESULTS_PROMPT = """Você é um DBA experiente em Oracle Database. Analise os seguintes resultados e forneça:

1. Resumo executivo em português
2. Principais problemas identificados
3. Recomendações de ação prioritárias
4. Explicação técnica simplificada

Tipo de Análise: {analysis_type}

Resultados:
{results}

Formate a resposta em markdown, sendo claro e objetivo. Use linguagem técnica mas acessível."""


class _AIClient(Protocol):
    def generate_content(self, prompt: str, max_tokens: int) -> str: ...


def _fmt_time(value: datetime | None) -> str:
    return _ZERO_TIME if value is None else value.strftime(_TIME_FORMAT)


def _parse_time(text: str) -> datetime | None:
    if not _STRICT_TIME.fullmatch(text):
        return None
    try:
        return datetime.strptime(text, _TIME_FORMAT)
    except ValueError:
        return None


def _strip_fences(text: str) -> str:
    text = text.strip()
    text = text.removeprefix("```json")
    text = text.removeprefix("```")
    text = text.removesuffix("```")
    return text.strip()


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def format_snapshots(snapshots: Sequence[Snapshot]) -> str:
    """Render snapshots as a small table for a prompt."""
    if not snapshots:
        return "Nenhum snapshot disponível"
    lines = ["ID | Instância | Início | Fim\n", "---|-----------|--------|----\n"]
    lines.extend(
        f"{snap.id} | {snap.instance_number} | "
        f"{_fmt_time(snap.begin_time)} | {_fmt_time(snap.end_time)}\n"
        for snap in snapshots
    )
    return "".join(lines)


def parse_awr_request_from_json(json_str: str) -> AWRReportRequest:
    """Pick AWR parameters out of a model reply that holds a JSON object."""
    text = _strip_fences(json_str)
    req = AWRReportRequest(report_type="html", instance_id=1)
    if match := _BEGIN_TIME.search(text):
        if (moment := _parse_time(match.group(1))) is not None:
            req.begin_time = moment
    if match := _END_TIME.search(text):
        if (moment := _parse_time(match.group(1))) is not None:
            req.end_time = moment
    if match := _BEGIN_SNAPSHOT.search(text):
        req.begin_snapshot = int(match.group(1))
    if match := _END_SNAPSHOT.search(text):
        req.end_snapshot = int(match.group(1))
    if match := _REPORT_TYPE.search(text):
        req.report_type = match.group(1)
    return req


def parse_awr_request_manual(
    natural_language: str, snapshots: Sequence[Snapshot]
) -> AWRReportRequest:
    """Derive AWR parameters from keywords; defaults to the last two hours."""
    req = AWRReportRequest(report_type="html", instance_id=1)
    now = datetime.now()
    lower = natural_language.lower()

    if match := _LAST_HOURS.search(lower):
        req.end_time = now
        req.begin_time = now - timedelta(hours=int(match.group(1)))
        return req
    if "ontem" in lower:
        req.end_time = _midnight(now)
        req.begin_time = req.end_time - timedelta(hours=24)
        return req
    if "hoje" in lower:
        req.begin_time = _midnight(now)
        req.end_time = now
        return req
    if match := _SNAP_RANGE.search(lower):
        req.begin_snapshot = int(match.group(1))
        req.end_snapshot = int(match.group(2))
        return req

    req.end_time = now
    req.begin_time = now - timedelta(hours=2)
    return req


def parse_ash_request_from_json(json_str: str) -> ASHRequest:
    """Pick ASH filters out of a model reply that holds a JSON object."""
    text = _strip_fences(json_str)
    req = ASHRequest()
    if match := _SQL_ID.search(text):
        req.sql_id = match.group(1)
    if match := _SID.search(text):
        req.sid = int(match.group(1))
    if match := _SERIAL.search(text):
        req.serial = int(match.group(1))
    if match := _BEGIN_TIME.search(text):
        if (moment := _parse_time(match.group(1))) is not None:
            req.begin_time = moment
    if match := _END_TIME.search(text):
        if (moment := _parse_time(match.group(1))) is not None:
            req.end_time = moment
    if match := _DURATION_MINUTES.search(text):
        now = datetime.now()
        req.end_time = now
        req.begin_time = now - timedelta(minutes=int(match.group(1)))
    return req


def parse_ash_request_manual(natural_language: str) -> ASHRequest:
    """Derive ASH filters from keywords in the request."""
    req = ASHRequest()
    lower = natural_language.lower()
    if match := _MANUAL_SQL_ID.search(lower):
        req.sql_id = match.group(1)
    if match := _MANUAL_SID.search(lower):
        req.sid = int(match.group(1))
    if match := _MANUAL_SERIAL.search(lower):
        req.serial = int(match.group(1))
    if match := _LAST_MINUTES.search(lower):
        now = datetime.now()
        req.end_time = now
        req.begin_time = now - timedelta(minutes=int(match.group(1)))
    return req


class AINaturalLanguageInterpreter:
    """Asks an AI client to read requests and results written in plain language."""

    def __init__(self, ai_client: _AIClient) -> None:
        self._client = ai_client

    def _ask(self, prompt: str, max_tokens: int) -> str:
        try:
            return self._client.generate_content(prompt, max_tokens)
        except Exception as exc:
            raise OracleAnalysisError(f"erro ao interpretar requisição: {exc}") from exc

    def parse_awr_request(
        self, natural_language: str, available_snapshots: Sequence[Snapshot]
    ) -> AWRReportRequest:
        """Turn a request into AWR report parameters."""
        prompt = _AWR_PROMPT.format(
            request=natural_language, snapshots=format_snapshots(available_snapshots)
        )
        response = self._ask(prompt, 500)
        try:
            return parse_awr_request_from_json(response)
        except ValueError:
            return parse_awr_request_manual(natural_language, available_snapshots)

    def parse_ash_request(self, natural_language: str) -> ASHRequest:
        """Turn a request into ASH filters."""
        prompt = _ASH_PROMPT.format(request=natural_language)
        response = self._ask(prompt, 500)
        try:
            return parse_ash_request_from_json(response)
        except ValueError:
            return parse_ash_request_manual(natural_language)

    def interpret_analysis_results(self, analysis_type: str, raw_results: str) -> str:
        """Ask for a markdown summary and recommendations on analysis output."""
        prompt = _RESULTS_PROMPT.format(analysis_type=analysis_type, results=raw_results)
        return self._client.generate_content(prompt, 2000)