import json

import pytest

from lending_fees import cli
from lending_fees.adapters.compound_v2_style import CompoundV2FeeAdapter


@pytest.fixture
def offline(monkeypatch, two_market_client, token_a_only_prices):
    """Route the CLI through the in-memory chain and price fakes."""
    monkeypatch.setattr(
        cli, "build_adapter", lambda config, **kw: CompoundV2FeeAdapter(two_market_client, config)
    )
    monkeypatch.setattr(cli, "LlamaPriceSource", lambda: token_a_only_prices)
    return two_market_client


def test_single_window_prints_json(offline, capsys):
    assert cli.main(["--timestamp", "1700000000"]) == 0

    out = json.loads(capsys.readouterr().out)
    assert out == {
        "timestamp": 1700000000,
        "dailyFees": "1.0",
        "dailyRevenue": "0.1",
        "dailyHoldersRevenue": "0.1",
        "dailySupplySideRevenue": repr(1.0 - 0.1),
    }


def test_skips_reported_on_stderr(offline, capsys):
    cli.main(["--timestamp", "1700000000"])

    assert "no_price" in capsys.readouterr().err


def test_breakdown_table(offline, capsys):
    assert cli.main(["--timestamp", "1700000000", "--breakdown"]) == 0

    out = capsys.readouterr().out
    assert "fees_usd" in out
    assert "0x" + "aa" * 20 in out


def test_date_range_prints_table(offline, capsys):
    assert cli.main(["--start-date", "2024-01-01", "--end-date", "2024-01-02"]) == 0

    out = capsys.readouterr().out
    assert "2024-01-01" in out
    assert "2024-01-02" in out


def test_window_before_start_fails(offline):
    assert cli.main(["--timestamp", "1600000000"]) == 1


def test_range_requires_end_date(offline):
    with pytest.raises(SystemExit):
        cli.main(["--start-date", "2024-01-01"])


def test_window_ends_for_date():
    args = cli.build_parser().parse_args(["--date", "2024-01-01"])

    assert cli.window_ends(args) == [1704153600]


@pytest.mark.parametrize("when", [["--timestamp", "1700000000"], ["--date", "2024-01-01"]])
def test_end_date_without_range_rejected(offline, when):
    with pytest.raises(SystemExit):
        cli.main(when + ["--end-date", "2024-01-05"])


def test_non_positive_log_chunk_size_rejected(offline):
    with pytest.raises(SystemExit):
        cli.main(["--timestamp", "1700000000", "--log-chunk-size", "-1"])
