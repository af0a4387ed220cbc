"""
PURPOSE: Tests for the Google Sheets client wrapper.

The Google API is never contacted: the per-thread service object is replaced
by a small fake that records requests and raises the errors under test. A
store-backed mode lets writes land so timeouts and retries can be checked
against the resulting rows.
"""

import base64
import json
import re
import time

import httplib2
import pytest
from googleapiclient.errors import HttpError

from momentum_sync.config.settings import Settings
from momentum_sync.core.errors import ExternalSyncError, TransientSheetError
from momentum_sync.sync import sheets_client
from momentum_sync.sync.reconciler import SheetReconciler
from momentum_sync.sync.sheets_client import GoogleSheetsClient, load_credentials


_ROW_IN_RANGE = re.compile(r"![A-Z]+(\d+)")


def _http_error(status):
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "boom"}}')


class _FakeRequest:
    def __init__(self, service, kind, kwargs):
        self._service = service
        self.kind = kind
        self.kwargs = kwargs

    def execute(self):
        service = self._service
        service.executed.append((self.kind, self.kwargs))
        if service.delay:
            time.sleep(service.delay)
        if self.kind == "append" and service.append_delays:
            time.sleep(service.append_delays.pop(0))
        if service.errors:
            raise service.errors.pop(0)
        if service.store is not None:
            return service.apply(self.kind, self.kwargs)
        return service.response


class _FakeValues:
    def __init__(self, service):
        self._service = service

    def get(self, **kwargs):
        return _FakeRequest(self._service, "get", kwargs)

    def update(self, **kwargs):
        return _FakeRequest(self._service, "update", kwargs)

    def append(self, **kwargs):
        return _FakeRequest(self._service, "append", kwargs)


class _FakeSpreadsheets:
    def __init__(self, service):
        self._service = service

    def values(self):
        return _FakeValues(self._service)


class FakeSheetsService:
    """
    Stand-in for googleapiclient's Resource for sheets v4.

    With store set, requests act on it as the data rows of one tab (store[0]
    is sheet row 2) instead of returning the canned response.
    """

    def __init__(self, response=None, errors=None, delay=0.0, store=None, append_delays=None):
        self.response = response if response is not None else {}
        self.errors = list(errors or [])
        self.delay = delay
        self.store = store
        self.append_delays = list(append_delays or [])
        self.executed = []

    def apply(self, kind, kwargs):
        if kind == "get":
            return {"values": [[row[0]] for row in self.store]}
        rows = kwargs["body"]["values"]
        if kind == "append":
            self.store.extend(list(row) for row in rows)
        else:
            row_number = int(_ROW_IN_RANGE.search(kwargs["range"]).group(1))
            self.store[row_number - 2] = list(rows[0])
        return {}

    def spreadsheets(self):
        return _FakeSpreadsheets(self)


def _client(service, timeout=5.0):
    client = GoogleSheetsClient("sheet-123", credentials_factory=lambda: object(), timeout=timeout)
    client._service = lambda: service
    return client


class TestRequests:
    """Test the shape of outbound requests."""

    async def test_get_range_returns_values(self):
        service = FakeSheetsService(response={"values": [["AAPL"], ["MSFT"]]})

        values = await _client(service).get_range("Sheet2!A2:A")

        assert values == [["AAPL"], ["MSFT"]]
        assert service.executed[0] == ("get", {"spreadsheetId": "sheet-123", "range": "Sheet2!A2:A"})

    async def test_get_range_of_empty_sheet(self):
        values = await _client(FakeSheetsService(response={})).get_range("Sheet2!A2:A")
        assert values == []

    async def test_update_uses_user_entered(self):
        service = FakeSheetsService()

        await _client(service).update_range("Sheet2!A3:N3", [["AAPL", "buy"]])

        kind, kwargs = service.executed[0]
        assert kind == "update"
        assert kwargs["valueInputOption"] == "USER_ENTERED"
        assert kwargs["body"] == {"values": [["AAPL", "buy"]]}

    async def test_append_inserts_rows(self):
        service = FakeSheetsService()

        await _client(service).append_rows("Sheet2!A2:N2", [["AAPL"]])

        kind, kwargs = service.executed[0]
        assert kind == "append"
        assert kwargs["insertDataOption"] == "INSERT_ROWS"
        assert kwargs["valueInputOption"] == "USER_ENTERED"


class TestErrorMapping:
    """Test translation of Google client failures."""

    async def test_transient_status_is_retried(self):
        service = FakeSheetsService(response={"values": [["AAPL"]]}, errors=[_http_error(503)])

        values = await _client(service).get_range("Sheet2!A2:A")

        assert values == [["AAPL"]]
        assert len(service.executed) == 2

    async def test_persistent_rate_limit_surfaces_as_transient(self):
        service = FakeSheetsService(errors=[_http_error(429)] * 3)

        with pytest.raises(TransientSheetError):
            await _client(service).get_range("Sheet2!A2:A")

        assert len(service.executed) == 3

    async def test_client_error_is_not_retried(self):
        service = FakeSheetsService(errors=[_http_error(403)])

        with pytest.raises(ExternalSyncError) as exc_info:
            await _client(service).update_range("Sheet2!A2:N2", [["AAPL"]])

        assert not isinstance(exc_info.value, TransientSheetError)
        assert "403" in exc_info.value.message
        assert len(service.executed) == 1

    async def test_append_is_not_retried(self):
        service = FakeSheetsService(errors=[_http_error(503)])

        with pytest.raises(TransientSheetError):
            await _client(service).append_rows("Sheet2!A2:N2", [["AAPL"]])

        assert len(service.executed) == 1

    async def test_transport_error_is_external(self):
        service = FakeSheetsService(errors=[httplib2.ServerNotFoundError("no route")])

        with pytest.raises(ExternalSyncError):
            await _client(service).get_range("Sheet2!A2:A")

    async def test_timeout_is_external(self):
        service = FakeSheetsService(delay=0.5)

        with pytest.raises(ExternalSyncError) as exc_info:
            await _client(service, timeout=0.05).get_range("Sheet2!A2:A")

        assert "timed out" in exc_info.value.message


class TestTimeouts:
    """Test that a timed-out write has finished before the error surfaces."""

    def test_transport_carries_timeout(self, monkeypatch):
        captured = {}
        credentials = object()

        def fake_build(name, version, http, cache_discovery):
            captured.update(http=http, cache_discovery=cache_discovery)
            return "service"

        monkeypatch.setattr(sheets_client, "build", fake_build)
        client = GoogleSheetsClient("sheet-123", credentials_factory=lambda: credentials, timeout=7.5)

        assert client._service() == "service"
        assert captured["http"].credentials is credentials
        assert captured["http"].http.timeout == 7.5
        assert captured["cache_discovery"] is False

    async def test_timed_out_append_completes_before_error(self):
        service = FakeSheetsService(store=[], append_delays=[0.3])

        with pytest.raises(ExternalSyncError) as exc_info:
            await _client(service, timeout=0.05).append_rows("Sheet2!A2:N2", [["AAPL", "buy"]])

        assert "timed out" in exc_info.value.message
        assert service.store == [["AAPL", "buy"]]

    async def test_reconcile_after_timed_out_append_updates_row(self):
        service = FakeSheetsService(store=[["MSFT"]], append_delays=[0.3])
        reconciler = SheetReconciler(client=_client(service, timeout=0.05), sheet_name="Sheet2")

        with pytest.raises(ExternalSyncError):
            await reconciler.reconcile({"ticker": "AAPL", "occ": "buy"})

        outcome = await reconciler.reconcile({"ticker": "AAPL", "occ": "sell"})

        assert outcome.action == "updated"
        assert outcome.row == 3
        assert [row[0] for row in service.store] == ["MSFT", "AAPL"]
        assert [kind for kind, _ in service.executed].count("append") == 1


class TestLoadCredentials:
    """Test credential sourcing."""

    def test_base64_blob_wins_over_file(self, monkeypatch, tmp_path):
        captured = {}

        def fake_from_info(info, scopes):
            captured.update(info=info, scopes=scopes)
            return "credentials"

        monkeypatch.setattr(
            sheets_client.service_account.Credentials, "from_service_account_info", fake_from_info
        )
        blob = base64.b64encode(json.dumps({"client_email": "bot@example.iam"}).encode()).decode()
        cfg = Settings(GOOGLE_CREDS_BASE64=blob, GOOGLE_CREDENTIALS_FILE=str(tmp_path / "missing.json"))

        assert load_credentials(cfg) == "credentials"
        assert captured["info"] == {"client_email": "bot@example.iam"}
        assert captured["scopes"] == sheets_client.SHEETS_SCOPES

    def test_file_used_without_blob(self, monkeypatch, tmp_path):
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps({"client_email": "file@example.iam"}), encoding="utf-8")
        monkeypatch.setattr(
            sheets_client.service_account.Credentials,
            "from_service_account_info",
            lambda info, scopes: info["client_email"],
        )

        cfg = Settings(GOOGLE_CREDS_BASE64="", GOOGLE_CREDENTIALS_FILE=str(path))

        assert load_credentials(cfg) == "file@example.iam"

    def test_garbage_blob_is_external_error(self):
        cfg = Settings(GOOGLE_CREDS_BASE64="not base64 json!")

        with pytest.raises(ExternalSyncError):
            load_credentials(cfg)

    def test_missing_file_is_external_error(self, tmp_path):
        cfg = Settings(GOOGLE_CREDS_BASE64="", GOOGLE_CREDENTIALS_FILE=str(tmp_path / "nope.json"))

        with pytest.raises(ExternalSyncError):
            load_credentials(cfg)

    def test_incomplete_service_account_is_external_error(self):
        blob = base64.b64encode(json.dumps({"type": "service_account"}).encode()).decode()

        with pytest.raises(ExternalSyncError):
            load_credentials(Settings(GOOGLE_CREDS_BASE64=blob))
