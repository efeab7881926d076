from datetime import datetime, timedelta

import pytest

from snip.oracle.analyzer import OracleAnalysisError, Snapshot
from snip.oracle.interpreter import (
    AINaturalLanguageInterpreter,
    format_snapshots,
    parse_ash_request_from_json,
    parse_ash_request_manual,
    parse_awr_request_from_json,
    parse_awr_request_manual,
)


class FakeClient:
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate_content(self, prompt, max_tokens):
        self.calls.append((prompt, max_tokens))
        if self.error is not None:
            raise self.error
        return self.reply


def test_format_snapshots_empty():
    assert format_snapshots([]) == "Nenhum snapshot disponível"


def test_format_snapshots_rows():
    snap = Snapshot(
        id=100,
        instance_number=1,
        begin_time=datetime(2024, 3, 1, 10, 0, 0),
        end_time=datetime(2024, 3, 1, 11, 0, 0),
    )
    text = format_snapshots([snap])
    lines = text.splitlines()
    assert lines[0] == "ID | Instância | Início | Fim"
    assert lines[2] == "100 | 1 | 2024-03-01 10:00:00 | 2024-03-01 11:00:00"
    assert len(lines) == 3


def test_awr_json_with_fences():
    reply = (
        "```json\n"
        '{"begin_time": "2024-03-01 10:00:00", "end_time": "2024-03-01 12:30:00",'
        ' "begin_snapshot": 100, "end_snapshot": 200, "report_type": "text"}\n'
        "```"
    )
    req = parse_awr_request_from_json(reply)
    assert req.begin_time == datetime(2024, 3, 1, 10, 0, 0)
    assert req.end_time == datetime(2024, 3, 1, 12, 30, 0)
    assert req.begin_snapshot == 100
    assert req.end_snapshot == 200
    assert req.report_type == "text"
    assert req.instance_id == 1


def test_awr_json_nulls_keep_defaults():
    req = parse_awr_request_from_json(
        '{"begin_time": null, "begin_snapshot": null, "report_type": null}'
    )
    assert req.report_type == "html"
    assert req.begin_time is None
    assert req.begin_snapshot == 0


def test_awr_json_bad_time_ignored():
    req = parse_awr_request_from_json('{"begin_time": "ontem de manhã"}')
    assert req.begin_time is None


def test_awr_manual_last_hours():
    req = parse_awr_request_manual("relatório das últimas 3 horas", [])
    assert req.end_time - req.begin_time == timedelta(hours=3)
    assert req.report_type == "html"


def test_awr_manual_yesterday():
    req = parse_awr_request_manual("Relatório de ONTEM", [])
    assert (req.end_time.hour, req.end_time.minute, req.end_time.second) == (0, 0, 0)
    assert req.end_time - req.begin_time == timedelta(hours=24)


def test_awr_manual_today():
    req = parse_awr_request_manual("relatório de hoje", [])
    assert req.begin_time == req.begin_time.replace(hour=0, minute=0, second=0, microsecond=0)
    assert req.end_time >= req.begin_time
    assert req.begin_time.date() == req.end_time.date()


def test_awr_manual_snapshots():
    req = parse_awr_request_manual("entre os snap 100 e 200", [])
    assert (req.begin_snapshot, req.end_snapshot) == (100, 200)
    assert req.begin_time is None


def test_awr_manual_default_two_hours():
    req = parse_awr_request_manual("qualquer coisa", [])
    assert req.end_time - req.begin_time == timedelta(hours=2)


def test_ash_json_fields():
    req = parse_ash_request_from_json('{"sql_id": "abc123def", "sid": 456, "serial": 789}')
    assert req.sql_id == "abc123def"
    assert req.sid == 456
    assert req.serial == 789
    assert req.begin_time is None


def test_ash_json_duration_overrides_times():
    req = parse_ash_request_from_json(
        '{"begin_time": "2024-03-01 10:00:00", "duration_minutes": 30}'
    )
    assert req.end_time - req.begin_time == timedelta(minutes=30)


def test_ash_manual():
    req = parse_ash_request_manual("SQL ID abcdefghij123 sid 12 serial 34 últimos 15 minutos")
    assert req.sql_id == "abcdefghij123"
    assert req.sid == 12
    assert req.serial == 34
    assert req.end_time - req.begin_time == timedelta(minutes=15)


def test_ash_manual_short_sql_id_ignored():
    req = parse_ash_request_manual("sql id abc")
    assert req.sql_id == ""


def test_interpreter_awr_uses_client_reply():
    client = FakeClient(reply='{"begin_snapshot": 7, "end_snapshot": 9}')
    interpreter = AINaturalLanguageInterpreter(client)
    req = interpreter.parse_awr_request("entre os snaps 7 e 9", [])
    assert (req.begin_snapshot, req.end_snapshot) == (7, 9)
    prompt, max_tokens = client.calls[0]
    assert max_tokens == 500
    assert '"entre os snaps 7 e 9"' in prompt
    assert "Nenhum snapshot disponível" in prompt


def test_interpreter_ash_uses_client_reply():
    client = FakeClient(reply='{"sid": 123}')
    interpreter = AINaturalLanguageInterpreter(client)
    req = interpreter.parse_ash_request("sessão 123")
    assert req.sid == 123
    assert client.calls[0][1] == 500


def test_interpreter_wraps_client_error():
    interpreter = AINaturalLanguageInterpreter(FakeClient(error=RuntimeError("offline")))
    with pytest.raises(OracleAnalysisError, match="erro ao interpretar requisição"):
        interpreter.parse_awr_request("ontem", [])
    with pytest.raises(OracleAnalysisError, match="offline"):
        interpreter.parse_ash_request("sid 1")


def test_interpret_analysis_results():
    client = FakeClient(reply="# Resumo")
    interpreter = AINaturalLanguageInterpreter(client)
    assert interpreter.interpret_analysis_results("ASH", "linhas") == "# Resumo"
    prompt, max_tokens = client.calls[0]
    assert max_tokens == 2000
    assert "Tipo de Análise: ASH" in prompt
    assert "linhas" in prompt