#!/usr/bin/env python3
"""
Tests for the HTTP surface: upload validation, analysis and playback queries.
"""

from conftest import export_csv
from services.config import DAILY_REWARD, START_ENDOWMENT, FlowConfig

CONTRACT = "SP000000000000000000002Q6VF78.sip-031"
OWNER = "SP26E434SDGRSA9QF5D65A3WZ29Y0MXD9AMXFJYDC"
FILENAME = f"transactions-{OWNER}.csv"


def _export():
    return export_csv([
        {"burn_date": "2025-09-16T08:00:00Z", "in_symbol": "STX", "in_amount": "2000000",
         "sender": CONTRACT, "tx_id": "0x1"},
        {"burn_date": "2025-09-16T09:00:00Z", "out_symbol": "STX", "out_amount": "500000",
         "recipient": "SMWHALE", "tx_id": "0x2"},
        {"burn_date": "2025-09-18T12:00:00Z", "out_symbol": "STX", "out_amount": "900",
         "recipient": "SPDUST", "tx_id": "0x3"},
    ])


def _upload(client, path="/analyze"):
    return client.post(path, files=[("files", (FILENAME, _export(), "text/csv"))])


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_upload_csv(client):
    response = _upload(client, "/upload-csv")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["total_transactions"] == 3
    assert [tx["tx_id"] for tx in body["transactions"]] == ["0x1", "0x2", "0x3"]


def test_upload_parses_each_export_once(client, monkeypatch):
    import main
    from services import ingestion

    calls = []
    original = ingestion.parse_export

    def counting_parse(name, content):
        calls.append(name)
        return original(name, content)

    monkeypatch.setattr(main, "parse_export", counting_parse)
    monkeypatch.setattr(ingestion, "parse_export", counting_parse)
    response = _upload(client, "/upload-csv")
    assert response.json()["total_transactions"] == 3
    assert calls == [FILENAME]


def test_initial_balances_seed_plain_reward_address():
    from main import _initial_balances

    config = FlowConfig(reward_address=OWNER)
    assert _initial_balances({OWNER, CONTRACT}, config) == {OWNER: START_ENDOWMENT}


def test_upload_rejects_non_csv(client):
    response = client.post("/upload-csv", files=[("files", ("notes.txt", "x", "text/plain"))])
    assert response.status_code == 400


def test_analyze_upload(client, flow_config):
    response = _upload(client)
    assert response.status_code == 200
    report = response.json()

    assert report["summary"]["total_transactions"] == 3
    assert {n["id"] for n in report["nodes"]} == {CONTRACT, OWNER, "SMWHALE"}
    assert len(report["day_groups"]) == 3
    assert report["day_groups"] == sorted(report["day_groups"])

    first = report["time_series"][0]["balances"]
    assert first[CONTRACT] == START_ENDOWMENT
    last = report["time_series"][-1]["balances"]
    # Last boundary is Sep 18 12:00, three whole days after the reward start
    assert last[CONTRACT] == START_ENDOWMENT - 2_000_000 + 3 * DAILY_REWARD
    assert last[OWNER] == 2_000_000 - 500_000 - 900

    # Stats-panel total leaves out the endowment contract
    assert report["time_series"][0]["circulating"] == 0
    assert report["time_series"][-1]["circulating"] == 2_000_000 - 900

    nodes = {n["id"]: n for n in report["nodes"]}
    assert nodes[CONTRACT]["label"] == "SIP-031 Endowment"
    assert nodes[OWNER]["label"] is None
    assert nodes[OWNER]["explorer_url"] == f"https://explorer.hiro.so/address/{OWNER}?chain=mainnet"


def test_analyze_existing_without_data(client):
    assert client.get("/analyze/existing").status_code == 404


def test_analyze_existing(client, flow_config):
    with open(f"{flow_config.data_dir}/{FILENAME}", "w", encoding="utf-8") as f:
        f.write(_export())
    response = client.get("/analyze/existing")
    assert response.status_code == 200
    assert response.json()["summary"]["total_transactions"] == 3


def test_analyze_with_no_surviving_transactions(client):
    content = export_csv([
        {"burn_date": "2025-09-01T00:00:00Z", "in_symbol": "STX", "in_amount": "100", "sender": "SPX"},
    ])
    response = client.post("/analyze", files=[("files", (FILENAME, content, "text/csv"))])
    assert response.status_code == 400


def test_queries_require_report(client):
    assert client.get("/day-index", params={"t": 0}).status_code == 404
    assert client.get("/download-report").status_code == 404


def test_playback_queries(client):
    report = _upload(client).json()
    groups = report["day_groups"]

    response = client.get("/day-index", params={"t": groups[1] + 1})
    assert response.json() == {"index": 1, "timestamp": groups[1]}

    day_one = client.get("/day/1/transactions").json()
    assert [tx["tx_id"] for tx in day_one["transactions"]] == ["0x1", "0x2"]
    assert client.get("/day/0/transactions").json()["transactions"] == []
    assert client.get("/day/99/transactions").status_code == 404

    nearest = client.get("/nearest-day", params={"date": "2025-09-18"}).json()
    assert nearest["timestamp"] == groups[2]
    assert nearest["index"] == 2
    assert client.get("/nearest-day").json()["timestamp"] == groups[0]


def test_download_report(client):
    _upload(client)
    response = client.get("/download-report")
    assert response.status_code == 200
    assert response.json()["summary"]["total_transactions"] == 3
