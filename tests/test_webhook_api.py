"""
PURPOSE: HTTP tests for the webhook endpoints.

Exercises the FastAPI app end to end against a per-test SQLite database and
the in-memory fake sheet:
- POST /webhook success, validation failures, storage vs sync failures
- GET /webhook, GET /webhook/{ticker}, DELETE /webhook/{ticker}
- GET /webhook/status and GET /
"""


def _post(client, payload):
    return client.post("/webhook", json=payload)


class TestReceiveAlert:
    """Test POST /webhook."""

    def test_single_indicator_alert(self, client, fake_sheet):
        response = _post(client, {"ticker": "AAPL", "indicator": "occ", "signal": "buy"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["message"] == "Webhook processed successfully"
        assert body["ticker"] == "AAPL"
        assert body["stored"] is True
        assert body["sync"] == "synced"
        assert body["sheet_action"] == "appended"
        assert body["transition"] is False
        assert fake_sheet.tickers() == ["AAPL"]

    def test_primary_signal_reports_transition(self, client):
        first = _post(client, {"ticker": "AAPL", "signal": "buy"}).json()
        repeat = _post(client, {"ticker": "AAPL", "signal": "buy"}).json()
        flipped = _post(client, {"ticker": "AAPL", "signal": "sell"}).json()

        assert [first["transition"], repeat["transition"], flipped["transition"]] == [True, False, True]
        assert repeat["sheet_action"] == "updated"

    def test_multi_signal_alert_reports_skipped_entries(self, client):
        response = _post(
            client,
            {
                "ticker": "MSFT",
                "signals": [
                    {"indicator": "occ", "signal": "buy"},
                    {"indicator": "bogus", "signal": "sell"},
                ],
            },
        )

        assert response.status_code == 200
        assert response.json()["skipped_signals"] == [
            {"index": 1, "indicator": "bogus", "reason": "unknown indicator"}
        ]
        record = client.get("/webhook/MSFT").json()
        assert record["occ"] == "buy"

    def test_invalid_indicator_is_400_and_stores_nothing(self, client, fake_sheet):
        response = _post(client, {"ticker": "AAPL", "indicator": "made_up", "signal": "buy"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "InvalidIndicator"
        assert body["detail"] == "invalid indicator: made_up"
        assert client.get("/webhook").json() == []
        assert fake_sheet.calls == []

    def test_missing_ticker_is_400(self, client):
        response = _post(client, {"signal": "buy"})

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_false_price_target_is_stored_as_null(self, client):
        response = _post(
            client, {"ticker": "AAPL", "signal": "buy", "analystPriceTarget": "false"}
        )

        assert response.status_code == 200
        assert client.get("/webhook/AAPL").json()["analyst_price_target"] is None

    def test_price_target_survives_later_alerts(self, client):
        _post(client, {"ticker": "AAPL", "signal": "buy", "analystPriceTarget": 212.5})
        _post(client, {"ticker": "AAPL", "indicator": "pmax", "signal": "sell"})

        record = client.get("/webhook/AAPL").json()
        assert record["analyst_price_target"] == 212.5
        assert record["pmax"] == "sell"
        assert record["signal"] == "buy"

    def test_sync_failure_is_502_but_record_is_stored(self, client, failing_sync):
        response = _post(client, {"ticker": "AAPL", "indicator": "occ", "signal": "buy"})

        assert response.status_code == 502
        body = response.json()
        assert body["stored"] is True
        assert body["sync"] == "failed"
        assert body["retryable"] is True
        assert body["ticker"] == "AAPL"
        assert client.get("/webhook/AAPL").json()["occ"] == "buy"

    def test_retry_after_sync_failure_repairs_sheet(self, client, fake_sheet):
        fake_sheet.fail_with = RuntimeError("connection reset")
        assert _post(client, {"ticker": "AAPL", "signal": "buy"}).status_code == 502

        fake_sheet.fail_with = None
        retry = _post(client, {"ticker": "AAPL", "signal": "buy"})

        assert retry.status_code == 200
        assert retry.json()["transition"] is False
        assert fake_sheet.tickers() == ["AAPL"]

    def test_non_object_body_is_422(self, client):
        response = client.post("/webhook", json=["AAPL", "buy"])

        assert response.status_code == 422
        assert response.json()["detail"] == "Request validation failed"


class TestReadEndpoints:
    """Test the read and maintenance endpoints."""

    def test_list_returns_every_record(self, client):
        _post(client, {"ticker": "AAPL", "signal": "buy"})
        _post(client, {"ticker": "MSFT", "indicator": "occ", "signal": "sell"})

        rows = client.get("/webhook").json()

        assert sorted(row["ticker"] for row in rows) == ["AAPL", "MSFT"]
        msft = next(row for row in rows if row["ticker"] == "MSFT")
        assert msft["occ"] == "sell"
        assert msft["signal"] == ""
        assert msft["signal_changed_at"] is None

    def test_get_unknown_ticker_is_404(self, client):
        assert client.get("/webhook/NOPE").status_code == 404

    def test_ticker_with_exchange_prefix(self, client):
        _post(client, {"ticker": "ASX:MEK", "signal": "buy"})

        assert client.get("/webhook/ASX:MEK").json()["ticker"] == "ASX:MEK"

    def test_delete(self, client):
        _post(client, {"ticker": "AAPL", "signal": "buy"})

        response = client.delete("/webhook/AAPL")

        assert response.status_code == 200
        assert response.json() == {"status": "deleted", "ticker": "AAPL"}
        assert client.get("/webhook/AAPL").status_code == 404
        assert client.delete("/webhook/AAPL").status_code == 404

    def test_status_counts_alerts_and_failures(self, client, fake_sheet):
        _post(client, {"ticker": "AAPL", "signal": "buy"})
        fake_sheet.fail_with = RuntimeError("down")
        _post(client, {"ticker": "AAPL", "signal": "sell"})

        status = client.get("/webhook/status").json()

        assert status["total_received"] == 2
        assert status["sync_failures"] == 1
        assert status["sheet_sync_enabled"] is True
        assert status["primary_indicator"] == "signal"
        assert status["signal_policy"] == "free_text"

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "ok"
        assert body["service"] == "momentum-sync"
