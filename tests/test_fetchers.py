"""
Клиенты источников: JSON API, PTAX Banco Central, страница котировки
"""
from datetime import date

import pytest
import requests

from cambio_hub.core.exceptions import ParseError, SourceUnavailableError, ValidationError
from cambio_hub.core.variation import format_signed_change
from cambio_hub.parser_service.fetchers import (
    BcbPtaxFetcher,
    JsonApiFetcher,
    PageScrapeFetcher,
    create_fetcher,
)

from conftest import FakeResponse, FakeSession, make_config, make_source

AWESOME_SELECTORS = {
    "rate": "USDBRL.bid",
    "change": "USDBRL.varBid",
    "percent": "USDBRL.pctChange",
}

PAGE_SELECTORS = {
    "price": ".YMlKec.fxKbKc",
    "container": ".rPF6Lc",
    "percent": ".JwB6zf",
    "change": ".P2Luy.Ebnabc.ZYVHBb, .ZYVHBb, .P2Luy, .Ebnabc",
    "direction": '[jsname="Fe7oBc"]',
}


def _awesome_payload(bid="5.2534", var_bid="0.0150", pct="0.29"):
    return {"USDBRL": {"code": "USD", "codein": "BRL", "bid": bid,
                       "varBid": var_bid, "pctChange": pct}}


def _page(price="5,2534", percent="0,29%", change="+0,0150", aria="Subiu 0,29%"):
    change_html = f'<span class="P2Luy Ebnabc ZYVHBb">{change}</span>' if change else ""
    return f"""
    <html><body>
      <div class="YMlKec fxKbKc">{price}</div>
      <div class="rPF6Lc">
        <span jsname="Fe7oBc" aria-label="{aria}"><span class="JwB6zf">{percent}</span></span>
        {change_html}
      </div>
    </body></html>
    """


class TestJsonApiFetcher:
    def _fetcher(self, responses, selectors=None):
        source = make_source("AwesomeAPI", selectors=selectors or AWESOME_SELECTORS)
        session = FakeSession(responses)
        return JsonApiFetcher(source, config=make_config(), session=session), session

    def test_rate_and_variation(self):
        fetcher, session = self._fetcher([FakeResponse(json_data=_awesome_payload())])

        sample = fetcher.fetch()

        assert sample.rate == pytest.approx(5.2534)
        assert sample.source == "AwesomeAPI"
        assert sample.direction == "up"
        assert sample.variation.absolute_change == pytest.approx(0.0150)
        assert sample.variation.percent == "0.29%"
        assert session.calls[0]["headers"] == {"Accept": "application/json"}

    def test_negative_change(self):
        payload = _awesome_payload(var_bid="-0.0075", pct="-0.14")
        fetcher, _ = self._fetcher([FakeResponse(json_data=payload)])

        sample = fetcher.fetch()

        assert sample.direction == "down"
        assert sample.variation.percent == "0.14%"

    def test_without_change_selector_is_stable(self):
        fetcher, _ = self._fetcher(
            [FakeResponse(json_data={"rate": 5.1})],
            selectors={"rate": "rate"},
        )

        sample = fetcher.fetch()

        assert sample.rate == 5.1
        assert sample.direction == "stable"

    def test_missing_field(self):
        fetcher, _ = self._fetcher([FakeResponse(json_data={"other": {}})])
        with pytest.raises(SourceUnavailableError):
            fetcher.fetch()

    def test_out_of_range(self):
        fetcher, _ = self._fetcher([FakeResponse(json_data=_awesome_payload(bid="52.5"))])
        with pytest.raises(ValidationError):
            fetcher.fetch()

    def test_user_agent_set(self):
        fetcher, session = self._fetcher([])
        assert session.headers["User-Agent"] == fetcher.config.USER_AGENT


class TestHttpErrors:
    def _fetch(self, response):
        source = make_source("AwesomeAPI", selectors=AWESOME_SELECTORS)
        fetcher = JsonApiFetcher(source, config=make_config(), session=FakeSession([response]))
        return fetcher.fetch()

    def test_rate_limited(self):
        with pytest.raises(SourceUnavailableError) as exc_info:
            self._fetch(FakeResponse(status_code=429))
        assert "429" in exc_info.value.reason

    def test_server_error(self):
        with pytest.raises(SourceUnavailableError) as exc_info:
            self._fetch(FakeResponse(status_code=503, text="Service Unavailable"))
        assert exc_info.value.source == "AwesomeAPI"

    @pytest.mark.parametrize("error", [
        requests.exceptions.Timeout("slow"),
        requests.exceptions.ConnectionError("dns"),
        requests.exceptions.TooManyRedirects("loop"),
    ])
    def test_network_errors(self, error):
        with pytest.raises(SourceUnavailableError):
            self._fetch(error)

    def test_not_json(self):
        with pytest.raises(SourceUnavailableError):
            self._fetch(FakeResponse(text="<html></html>"))


class TestBcbPtaxFetcher:
    def _fetcher(self, responses, today=date(2026, 10, 19), **overrides):
        source = make_source("Banco Central API", provider="bcb_ptax")
        session = FakeSession(responses)
        fetcher = BcbPtaxFetcher(source, config=make_config(**overrides),
                                 session=session, today=lambda: today)
        return fetcher, session

    def test_url_format(self):
        fetcher, _ = self._fetcher([])
        url = fetcher.build_url(date(2026, 1, 5))
        assert url.endswith("?@dataCotacao='01-05-2026'&$top=1&$format=json")

    def test_today_quote(self):
        fetcher, _ = self._fetcher([
            FakeResponse(json_data={"value": [{"cotacaoCompra": 5.24, "cotacaoVenda": 5.2512}]}),
        ])

        sample = fetcher.fetch()

        assert sample.rate == pytest.approx(5.2512)
        assert sample.source == "Banco Central API"
        assert sample.direction == "stable"

    def test_walks_back_over_weekend(self):
        fetcher, session = self._fetcher([
            FakeResponse(json_data={"value": []}),
            FakeResponse(json_data={"value": []}),
            FakeResponse(json_data={"value": [{"cotacaoVenda": 5.31}]}),
        ], today=date(2026, 10, 18))

        assert fetcher.fetch().rate == pytest.approx(5.31)
        assert "10-16-2026" in session.calls[-1]["url"]

    def test_gives_up_after_lookback(self):
        fetcher, session = self._fetcher(
            [FakeResponse(json_data={"value": []}) for _ in range(3)],
            PTAX_LOOKBACK_DAYS=2,
        )

        with pytest.raises(SourceUnavailableError):
            fetcher.fetch()
        assert len(session.calls) == 3


class TestPageScrapeFetcher:
    def _fetcher(self, responses=None, selectors=None):
        source = make_source("Google Finance", kind="browser",
                             selectors=selectors or PAGE_SELECTORS)
        session = FakeSession(responses or [])
        return PageScrapeFetcher(source, config=make_config(), session=session), session

    def test_parse_page(self):
        fetcher, _ = self._fetcher()

        sample = fetcher.parse_page(_page())

        assert sample.rate == pytest.approx(5.2534)
        assert sample.direction == "up"
        assert sample.variation.percent == "0.29%"
        assert sample.variation.absolute_change == pytest.approx(0.0150)

    def test_negative_change_with_unicode_minus(self):
        fetcher, _ = self._fetcher()

        sample = fetcher.parse_page(_page(change="−0,0075", aria="Diminuiu 0,14%"))

        assert sample.direction == "down"
        assert sample.variation.absolute_change == pytest.approx(-0.0075)

    def test_direction_from_aria_label_without_change(self):
        fetcher, _ = self._fetcher()

        sample = fetcher.parse_page(_page(change=None, aria="Diminuiu 0,14%"))

        assert sample.direction == "down"
        assert sample.variation.absolute_change == 0.0
        assert format_signed_change(sample.variation) == "(=)"

    def test_missing_container_is_stable(self):
        fetcher, _ = self._fetcher()
        html = '<div class="YMlKec fxKbKc">5,10</div>'

        sample = fetcher.parse_page(html)

        assert sample.rate == pytest.approx(5.10)
        assert sample.direction == "stable"
        assert sample.variation.percent == "0.00%"

    def test_missing_price(self):
        fetcher, _ = self._fetcher()
        with pytest.raises(ParseError):
            fetcher.parse_page("<html><body>captcha</body></html>")

    def test_fetch_requests_html_with_browser_agent(self):
        fetcher, session = self._fetcher([FakeResponse(text=_page())])

        assert fetcher.fetch().source == "Google Finance"
        assert session.calls[0]["headers"] == {"Accept": "text/html"}
        assert session.headers["User-Agent"] == fetcher.config.BROWSER_USER_AGENT


class TestRegistry:
    def test_kind_selects_fetcher(self):
        config = make_config()
        api = create_fetcher(make_source("X"), config, session=FakeSession())
        page = create_fetcher(make_source("Y", kind="browser"), config, session=FakeSession())

        assert isinstance(api, JsonApiFetcher)
        assert isinstance(page, PageScrapeFetcher)

    def test_provider_overrides_kind(self):
        fetcher = create_fetcher(
            make_source("Banco Central API", provider="bcb_ptax"),
            make_config(),
            session=FakeSession(),
        )
        assert isinstance(fetcher, BcbPtaxFetcher)
        assert fetcher.get_source_name() == "Banco Central API"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_fetcher(make_source("Z", provider="nope"), make_config(), session=FakeSession())
