from bs4 import BeautifulSoup

from pricing.config import ScrapeConfig
from pricing.strategies import (
    BoundedTextScanStrategy,
    CardPriceStrategy,
    ListingLinkStrategy,
    default_strategies,
    extract_candidate_prices,
)

CARD_HTML = """
<html><body>
  <section class="olx-adcard">
    <h2>VW Gol 1.0 2015</h2>
    <h3 class="olx-adcard__price">R$ 45.900</h3>
  </section>
  <section class="olx-adcard">
    <h2>VW Gol 1.0 2015 completo</h2>
    <h3 class="olx-adcard__price">R$ 52.000</h3>
  </section>
  <div class="banner">Financie a partir de R$ 999</div>
</body></html>
"""

LINK_HTML = """
<html><body>
  <a href="https://sp.olx.com.br/autos-e-pecas/carros-vans-e-utilitarios/gol-123">
    <div><h2>Gol 1.0 MPI</h2><span>R$ 38.500</span></div>
  </a>
  <a href="https://sp.olx.com.br/autos-e-pecas/carros-vans-e-utilitarios/gol-456">
    <div><h2>Gol G5</h2><p class="sc-price-tag">R$ 41.000,00</p></div>
  </a>
  <a href="/ajuda">Ajuda R$ 10.000</a>
</body></html>
"""

SCAN_HTML = """
<html><body>
  <div>
    <p>Ligue (11) 99999-9999</p>
    <span>R$ 27.900</span>
    <span>R$ 9.999.999.999</span>
    <span>R$ 500</span>
    <span>R$ 31.500 à vista</span>
  </div>
</body></html>
"""


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def test_card_strategy_reads_price_components():
    prices = CardPriceStrategy(ScrapeConfig()).extract(_soup(CARD_HTML))
    assert prices == [45900.0, 52000.0]


def test_card_strategy_empty_on_unknown_markup():
    assert CardPriceStrategy(ScrapeConfig()).extract(_soup(LINK_HTML)) == []


def test_listing_link_strategy_reads_innermost_price():
    prices = ListingLinkStrategy(ScrapeConfig()).extract(_soup(LINK_HTML))
    assert prices == [38500.0, 41000.0]


def test_text_scan_filters_implausible_values():
    prices = BoundedTextScanStrategy(ScrapeConfig()).extract(_soup(SCAN_HTML))
    assert prices == [27900.0, 31500.0]


def test_text_scan_respects_element_cap():
    filler = "<i>x</i>" * 600
    html = f"<html><body>{filler}<span>R$ 30.000</span></body></html>"
    assert BoundedTextScanStrategy(ScrapeConfig()).extract(_soup(html)) == []
    relaxed = ScrapeConfig(scan_element_cap=1000)
    assert BoundedTextScanStrategy(relaxed).extract(_soup(html)) == [30000.0]


def test_text_scan_skips_long_text():
    long_text = "Descrição " * 20 + "R$ 30.000"
    html = f"<html><body><p>{long_text}</p></body></html>"
    assert BoundedTextScanStrategy(ScrapeConfig()).extract(_soup(html)) == []


def test_fallback_chain_stops_at_first_productive_tier():
    prices, tier = extract_candidate_prices(_soup(CARD_HTML), default_strategies())
    assert tier == "card"
    assert prices == [45900.0, 52000.0]

    prices, tier = extract_candidate_prices(_soup(LINK_HTML), default_strategies())
    assert tier == "listing_link"
    assert prices == [38500.0, 41000.0]

    prices, tier = extract_candidate_prices(_soup(SCAN_HTML), default_strategies())
    assert tier == "text_scan"


def test_fallback_chain_no_prices():
    prices, tier = extract_candidate_prices(_soup("<html><body><p>Nenhum anúncio</p></body></html>"), default_strategies())
    assert prices == []
    assert tier is None
