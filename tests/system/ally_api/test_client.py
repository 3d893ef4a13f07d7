"""Unit tests for AllyClient - the call pipeline end to end.

The transport is mocked; decoding, printing and the background rate-limit
threads run for real.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from system.ally_api.client import AllyClient
from system.ally_api.errors import CredentialError, DecodeError, TransportError

QUOTES_DOC = {
    "response": {
        "@id": "abc",
        "elapsedtime": "2",
        "quotes": {"quotetype": "Real Time", "quote": {"symbol": "AAPL", "last": "132.05"}},
    }
}
STATUS_DOC = {"status": "connected"}
LOW_BUDGET_HEADERS = {"X-Ratelimit-Remaining": "5", "X-Ratelimit-Expire": "1609459200.0"}


class TestAllyClientCall:
    """call/get/post behavior."""

    def test_two_documents_printed_in_order(
        self, ally_client, transport_mock, response_factory, out
    ):
        body = json.dumps(QUOTES_DOC) + "\n" + json.dumps(STATUS_DOC)
        transport_mock.send.return_value = response_factory(
            body, headers={"X-Ratelimit-Remaining": "99"}
        )

        manager = ally_client.thread_manager
        with patch.object(manager, "start_thread", wraps=manager.start_thread) as start_thread:
            responses = ally_client.call(
                "POST", "/market/ext/quotes.json", {"symbols": ["AAPL"]}, out=out
            )

        assert [r.status for r in responses] == [None, "connected"]
        assert responses[0].quotes == [{"symbol": "AAPL", "last": "132.05"}]
        assert out.getvalue() == "".join(r.to_json() + "\n" for r in responses)
        assert start_thread.call_count == 1
        transport_mock.send.assert_called_once_with(
            "POST", "/market/ext/quotes.json", {"symbols": ["AAPL"]}
        )

    def test_each_call_schedules_one_update(
        self, ally_client, transport_mock, response_factory, out
    ):
        transport_mock.send.side_effect = [
            response_factory(json.dumps(STATUS_DOC), headers={"X-Ratelimit-Remaining": "80"}),
            response_factory(json.dumps(STATUS_DOC), headers={"X-Ratelimit-Remaining": "79"}),
        ]

        ally_client.get("/accounts.json", out=out)
        ally_client.get("/accounts.json", out=out)

        assert ally_client.thread_manager.get_results_summary()["total"] == 2
        assert ally_client.wait_for_background() is True
        assert ally_client.calls_remaining in (79, 80)

    def test_rate_limit_state_updated_after_wait(
        self, ally_client, transport_mock, response_factory, out, caplog
    ):
        transport_mock.send.return_value = response_factory(
            json.dumps(STATUS_DOC), headers=LOW_BUDGET_HEADERS
        )

        ally_client.get("/accounts.json", out=out)
        ally_client.wait_for_background()

        assert ally_client.calls_remaining == 5
        assert ally_client.rate_limit.expires_at.isoformat() == "2021-01-01T00:00:00+00:00"
        assert any("only 5 API calls remaining" in r.getMessage() for r in caplog.records)

    def test_missing_headers_do_not_fail_the_call(
        self, ally_client, transport_mock, response_factory, out
    ):
        transport_mock.send.return_value = response_factory(json.dumps(STATUS_DOC))

        responses = ally_client.get("/accounts.json", out=out)
        ally_client.wait_for_background()

        assert responses[0].status == "connected"
        assert ally_client.calls_remaining == 0

    def test_decode_failure_prints_nothing_and_skips_update(
        self, ally_client, transport_mock, response_factory, out
    ):
        response = response_factory(json.dumps({"response": {"elapsedtime": "soon"}}))
        transport_mock.send.return_value = response

        with pytest.raises(DecodeError):
            ally_client.get("/accounts.json", out=out)

        assert out.getvalue() == ""
        assert ally_client.thread_manager.get_results_summary()["total"] == 0
        response.close.assert_called_once()

    def test_body_read_failure_becomes_transport_error(
        self, ally_client, transport_mock, response_factory, out
    ):
        response = response_factory("")
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("reset")
        transport_mock.send.return_value = response

        with pytest.raises(TransportError, match="reset"):
            ally_client.get("/accounts.json", out=out)

        response.close.assert_called_once()

    def test_transport_errors_propagate(self, ally_client, transport_mock, out):
        transport_mock.send.side_effect = TransportError("down")

        with pytest.raises(TransportError, match="down"):
            ally_client.get("/accounts.json", out=out)

    def test_post_passes_form(self, ally_client, transport_mock, response_factory, out):
        transport_mock.send.return_value = response_factory(json.dumps(STATUS_DOC))

        ally_client.post("/market/ext/quotes.json", {"symbols": ["F"]}, out=out)

        transport_mock.send.assert_called_once_with(
            "POST", "/market/ext/quotes.json", {"symbols": ["F"]}
        )

    def test_prints_to_stdout_by_default(
        self, ally_client, transport_mock, response_factory, capsys
    ):
        transport_mock.send.return_value = response_factory(json.dumps(STATUS_DOC))

        ally_client.get("/accounts.json")

        assert json.loads(capsys.readouterr().out) == STATUS_DOC

    def test_thread_limit_falls_back_to_inline_update(
        self, ally_client, transport_mock, response_factory, out
    ):
        transport_mock.send.return_value = response_factory(
            json.dumps(STATUS_DOC), headers={"X-Ratelimit-Remaining": "12"}
        )
        ally_client.thread_manager.start_thread = MagicMock(
            side_effect=RuntimeError("Max threads (8) limit reached")
        )

        ally_client.get("/accounts.json", out=out)

        assert ally_client.calls_remaining == 12


class TestAllyClientLifecycle:
    """Construction and shutdown."""

    def test_from_provider_loads_credentials(self, full_provider, ally_config):
        with patch("system.ally_api.client.SignedTransport") as transport_cls:
            client = AllyClient.from_provider(full_provider, ally_config)

        credentials = transport_cls.call_args.args[0]
        assert credentials.consumer_key == "ck"
        assert credentials.access_secret == "as"
        assert client.config is ally_config

    @pytest.mark.parametrize("matches", [[], ["one", "two"]])
    def test_from_provider_never_builds_client_on_credential_error(
        self, provider_factory, ally_config, matches
    ):
        provider = provider_factory(
            {
                ("TradeKing", "consumer_key"): ["ck"],
                ("TradeKing", "consumer_secret"): matches,
                ("TradeKing", "access_token"): ["at"],
                ("TradeKing", "access_secret"): ["as"],
            }
        )

        with patch.object(AllyClient, "__init__", return_value=None) as init:
            with pytest.raises(CredentialError):
                AllyClient.from_provider(provider, ally_config)

        init.assert_not_called()

    def test_close_waits_then_closes_transport(self, ally_client, transport_mock):
        ally_client.thread_manager = MagicMock()

        ally_client.close()

        ally_client.thread_manager.wait_for_all_threads.assert_called_once()
        transport_mock.close.assert_called_once()

    def test_context_manager_closes(self, credentials, ally_config, transport_mock):
        with AllyClient(credentials, config=ally_config, transport=transport_mock) as client:
            assert client.calls_remaining == 0

        transport_mock.close.assert_called_once()

    def test_default_transport_uses_config(self, credentials, ally_config):
        ally_config.base_url = "https://example.test/v9"
        ally_config.request_timeout = 3.0

        client = AllyClient(credentials, config=ally_config)

        assert client.transport.base_url == "https://example.test/v9"
        assert client.transport.timeout == 3.0
