"""
Unit tests for the Compound v2-style adapter.

Tests:
- Market directory: ordering, permit-failure metadata
- Log harvester: flattening, strict vs tolerant failures
- AccrueInterest decoding and its failure modes
"""
import pytest

from lending_fees.adapters.compound_v2_style import (
    ACCRUE_INTEREST_DATA_LEN,
    CompoundV2FeeAdapter,
    decode_accrue_interest,
    get_reserve_factors,
    get_underlyings,
    harvest_logs,
    list_markets,
    load_market_book,
)
from lending_fees.config.settings import ACCRUE_INTEREST_TOPIC, FeeAdapterConfig
from lending_fees.errors import EventDecodeError, LogFetchError

from conftest import (
    MARKET_A,
    MARKET_B,
    MARKET_C,
    ONE_E18,
    TOKEN_A,
    TOKEN_B,
    FakeChainClient,
    encode_words,
    make_log,
)


class TestMarketDirectory:
    def test_list_markets_keeps_order(self):
        client = FakeChainClient(markets=[MARKET_C, MARKET_A, MARKET_B])

        assert list_markets(client, "0x" + "99" * 20) == [MARKET_C, MARKET_A, MARKET_B]

    def test_failed_underlying_becomes_none_in_place(self):
        client = FakeChainClient(underlyings={MARKET_A: TOKEN_A, MARKET_C: TOKEN_B})

        assert get_underlyings(client, [MARKET_A, MARKET_B, MARKET_C]) == [TOKEN_A, None, TOKEN_B]

    def test_failed_reserve_factor_becomes_none_in_place(self):
        client = FakeChainClient(reserve_factors={MARKET_B: ONE_E18 // 4})

        assert get_reserve_factors(client, [MARKET_A, MARKET_B]) == [None, ONE_E18 // 4]

    def test_load_market_book(self):
        client = FakeChainClient(
            markets=[MARKET_A, MARKET_B],
            underlyings={MARKET_A: TOKEN_A},
            reserve_factors={MARKET_A: 1, MARKET_B: 2},
        )

        book = load_market_book(client, "0x" + "99" * 20)

        assert book.addresses == [MARKET_A, MARKET_B]
        assert book.lookup(MARKET_A).underlying == TOKEN_A
        assert book.lookup(MARKET_B).underlying is None
        assert book.lookup(MARKET_B).reserve_factor == 2


class TestHarvestLogs:
    def test_flattens_in_market_order(self):
        client = FakeChainClient(logs={
            MARKET_A: [make_log(MARKET_A, 1), make_log(MARKET_A, 2)],
            MARKET_B: [make_log(MARKET_B, 3)],
        })

        logs, failed = harvest_logs(client, [MARKET_B, MARKET_C, MARKET_A], ACCRUE_INTEREST_TOPIC, 10, 20)

        assert [lg["address"] for lg in logs] == [MARKET_B, MARKET_A, MARKET_A]
        assert failed == []

    def test_requests_topic_and_range(self):
        client = FakeChainClient()

        harvest_logs(client, [MARKET_A], ACCRUE_INTEREST_TOPIC, 100, 200)

        assert client.log_requests == [(MARKET_A, (ACCRUE_INTEREST_TOPIC,), 100, 200)]

    def test_strict_failure_aborts(self):
        client = FakeChainClient(logs={MARKET_A: [make_log(MARKET_A, 1)]}, log_failures=[MARKET_B])

        with pytest.raises(LogFetchError) as exc:
            harvest_logs(client, [MARKET_A, MARKET_B], ACCRUE_INTEREST_TOPIC, 1, 2)
        assert exc.value.market == MARKET_B

    def test_tolerant_mode_lists_failed_markets(self):
        client = FakeChainClient(logs={MARKET_A: [make_log(MARKET_A, 1)]}, log_failures=[MARKET_B])

        logs, failed = harvest_logs(client, [MARKET_A, MARKET_B], ACCRUE_INTEREST_TOPIC, 1, 2, strict=False)

        assert len(logs) == 1
        assert failed == [MARKET_B]

    def test_no_markets(self):
        assert harvest_logs(FakeChainClient(), [], ACCRUE_INTEREST_TOPIC, 1, 2) == ([], [])


class TestDecodeAccrueInterest:
    def test_decodes_hex_payload(self):
        log = make_log(MARKET_A, interest=42, cash_prior=7, borrow_index=ONE_E18, total_borrows=99, block_number=5)

        rec = decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

        assert rec.market == MARKET_A
        assert rec.cash_prior == 7
        assert rec.interest_accumulated == 42
        assert rec.borrow_index_new == ONE_E18
        assert rec.total_borrows_new == 99
        assert rec.block_number == 5
        assert rec.tx_hash == "0x" + "ab" * 32

    def test_decodes_bytes_payload_and_topics(self):
        log = make_log(MARKET_A, interest=2 ** 255)
        log["data"] = bytes.fromhex(log["data"][2:])
        log["topics"] = [bytes.fromhex(ACCRUE_INTEREST_TOPIC[2:])]
        log["transactionHash"] = b"\x01" * 32

        rec = decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

        assert rec.interest_accumulated == 2 ** 255
        assert rec.tx_hash == "0x" + "01" * 32

    def test_topic_match_ignores_case(self):
        log = make_log(MARKET_A, interest=1, topic0=ACCRUE_INTEREST_TOPIC.upper().replace("0X", "0x"))

        assert decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC).interest_accumulated == 1

    def test_wrong_topic(self):
        log = make_log(MARKET_A, interest=1, topic0="0x" + "00" * 32)

        with pytest.raises(EventDecodeError):
            decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

    def test_no_topics(self):
        log = make_log(MARKET_A, interest=1)
        log["topics"] = []

        with pytest.raises(EventDecodeError):
            decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

    def test_short_payload(self):
        log = make_log(MARKET_A, interest=1)
        log["data"] = encode_words(1, 2, 3)

        with pytest.raises(EventDecodeError):
            decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

    def test_three_field_legacy_event_rejected(self):
        """Older cTokens emit AccrueInterest without cashPrior; that layout is not accepted."""
        log = make_log(MARKET_A, interest=1)
        log["data"] = encode_words(1, 2, 3)
        assert len(bytes.fromhex(log["data"][2:])) != ACCRUE_INTEREST_DATA_LEN

        with pytest.raises(EventDecodeError):
            decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

    def test_invalid_hex(self):
        log = make_log(MARKET_A, interest=1)
        log["data"] = "0xzz"

        with pytest.raises(EventDecodeError):
            decode_accrue_interest(log, ACCRUE_INTEREST_TOPIC)

    def test_missing_field(self):
        with pytest.raises(EventDecodeError):
            decode_accrue_interest({"address": MARKET_A, "topics": [ACCRUE_INTEREST_TOPIC]}, ACCRUE_INTEREST_TOPIC)


class TestCompoundV2FeeAdapter:
    def test_fetch_and_normalize(self, config, two_market_client):
        adapter = CompoundV2FeeAdapter(two_market_client, config)

        book = adapter.resolve_markets()
        raw = adapter.fetch_events(book, 1, 2)
        records = adapter.decode_all(raw)

        assert [r.market for r in records] == [MARKET_A, MARKET_B]
        assert [r.interest_accumulated for r in records] == [ONE_E18, 3 * ONE_E18]
        assert adapter.failed_markets == []

    def test_non_strict_config_records_failures(self, two_market_client):
        config = FeeAdapterConfig(
            name="lenient", chain="ethereum", comptroller="0x" + "99" * 20, strict_logs=False
        )
        two_market_client.log_failures = {MARKET_B}
        adapter = CompoundV2FeeAdapter(two_market_client, config)

        raw = adapter.fetch_events(adapter.resolve_markets(), 1, 2)

        assert len(raw) == 1
        assert adapter.failed_markets == [MARKET_B]
