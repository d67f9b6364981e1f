"""
Tests for table and card extraction.
"""

from datetime import datetime

from bs4 import BeautifulSoup

from scrapers.utils.extractors import (
    CARD_SELECTORS,
    ExtractionStrategy,
    card_strategies,
    extract_from_cards,
    extract_shows,
    extract_table_data_by_headers,
    find_column_index,
    is_repeated_header,
    resolve_columns,
    run_strategies,
    table_strategies,
)

ORCHESTRA = "Lords of the Sound"


def parse(html):
    return BeautifulSoup(html, "html.parser")


def table(html):
    return parse(html).find("table")


class TestColumnMapping:
    """Test header-driven column resolution."""

    def test_find_column_index_exact_and_substring(self):
        t = table(
            "<table><thead><tr><th>Date</th><th>Tour City</th><th>Show</th></tr></thead></table>"
        )
        assert find_column_index(t, "date") == 0
        assert find_column_index(t, "city") == 1
        assert find_column_index(t, "show") == 2

    def test_find_column_index_case_insensitive(self):
        t = table("<table><tr><th>  DATE </th><th>CITY</th></tr></table>")
        assert find_column_index(t, "date") == 0
        assert find_column_index(t, "City") == 1

    def test_missing_header_is_none(self):
        t = table("<table><tr><th>Date</th></tr></table>")
        assert find_column_index(t, "country") is None

    def test_first_row_used_without_thead(self):
        t = table(
            "<table><tr><td>When</td><td>Date</td></tr>"
            "<tr><td>Date</td><td>x</td></tr></table>"
        )
        assert find_column_index(t, "date") == 1

    def test_leftmost_match_wins(self):
        t = table("<table><tr><th>Date</th><th>Date (local)</th></tr></table>")
        assert find_column_index(t, "date") == 0

    def test_show_aliases_in_order(self):
        t = table("<table><tr><th>Program</th><th>Venue</th><th>Date</th></tr></table>")
        columns = resolve_columns(t)
        # venue is tried before program
        assert columns.show == 1
        assert columns.date == 2

    def test_unresolved_fields(self):
        t = table("<table><tr><th>Date</th></tr></table>")
        columns = resolve_columns(t)
        assert columns.usable
        assert columns.city is None
        assert columns.show is None
        assert columns.country is None

    def test_not_usable_without_date(self):
        t = table("<table><tr><th>City</th><th>Show</th></tr></table>")
        assert not resolve_columns(t).usable


class TestTableExtraction:
    """Test extraction from one table."""

    def test_basic_rows(self):
        t = table(
            "<table><thead><tr><th>Date</th><th>City</th><th>Scene</th></tr></thead><tbody>"
            "<tr><td>12.04.2025</td><td>Hamburg</td><td>Elbphilharmonie</td></tr>"
            "<tr><td>20.03.2025</td><td>Munich</td><td>Isarphilharmonie</td></tr>"
            "</tbody></table>"
        )
        records = extract_table_data_by_headers(t, "Germany", ORCHESTRA)

        assert len(records) == 2
        assert records[0].date == datetime(2025, 4, 12)
        assert records[0].city == "Hamburg"
        assert records[0].show == "Elbphilharmonie"
        assert records[0].country == "Germany"
        assert records[0].orchestra == ORCHESTRA

    def test_first_body_row_kept(self):
        """Only the header row is skipped, not the first data row."""
        t = table(
            "<table><thead><tr><th>Date</th></tr></thead>"
            "<tbody><tr><td>01.05.2025</td></tr><tr><td>02.05.2025</td></tr></tbody></table>"
        )
        records = extract_table_data_by_headers(t, "", ORCHESTRA)
        assert [r.date.day for r in records] == [1, 2]

    def test_no_date_header_returns_empty(self):
        t = table(
            "<table><tr><th>City</th><th>Show</th></tr>"
            "<tr><td>Berlin</td><td>15.03.2025</td></tr></table>"
        )
        assert extract_table_data_by_headers(t, "Germany", ORCHESTRA) == []

    def test_repeated_header_row_in_body_skipped(self):
        t = table(
            "<table><thead><tr><th>Date</th><th>City</th></tr></thead><tbody>"
            "<tr><td>15.03.2025</td><td>Berlin</td></tr>"
            "<tr><td>Date</td><td>City</td></tr>"
            "<tr><td>16.03.2025</td><td>Update: city changed</td></tr>"
            "<tr><td>17.03.2025</td><td>Leipzig</td></tr>"
            "</tbody></table>"
        )
        records = extract_table_data_by_headers(t, "Germany", ORCHESTRA)
        # the 16.03 row mentions both "date" and "city", so it is treated as a header
        assert [r.city for r in records] == ["Berlin", "Leipzig"]

    def test_venue_row_also_counts_as_header(self):
        row = parse("<table><tr><td>Date</td><td>Venue</td></tr></table>").find("tr")
        assert is_repeated_header(row)

    def test_non_date_cells_rejected(self):
        t = table(
            "<table><tr><th>Date</th><th>City</th></tr>"
            "<tr><td>TBA</td><td>Rome</td></tr>"
            "<tr><td>31.02.2025</td><td>Milan</td></tr>"
            "<tr><td>01.03.2025</td><td>Turin</td></tr></table>"
        )
        records = extract_table_data_by_headers(t, "Italy", ORCHESTRA)
        assert [r.city for r in records] == ["Turin"]

    def test_dates_without_year_rejected(self):
        """Partial dates pass the shape check but must not get a made-up month or year."""
        t = table(
            "<table><tr><th>Date</th><th>City</th></tr>"
            "<tr><td>15.03</td><td>Berlin</td></tr>"
            "<tr><td>19:00</td><td>Leipzig</td></tr>"
            "<tr><td>12</td><td>Dresden</td></tr></table>"
        )
        assert extract_table_data_by_headers(t, "Germany", ORCHESTRA) == []

    def test_row_country_overrides_default(self):
        t = table(
            "<table><tr><th>Date</th><th>City</th><th>Country</th></tr>"
            "<tr><td>15.03.2025</td><td>Vienna</td><td>Austria</td></tr>"
            "<tr><td>16.03.2025</td><td>Berlin</td><td></td></tr></table>"
        )
        records = extract_table_data_by_headers(t, "Germany", ORCHESTRA)
        assert [r.country for r in records] == ["Austria", "Germany"]

    def test_short_rows_degrade_to_empty(self):
        t = table(
            "<table><tr><th>Date</th><th>City</th><th>Show</th></tr>"
            "<tr><td>15.03.2025</td></tr>"
            "<tr></tr></table>"
        )
        records = extract_table_data_by_headers(t, "Germany", ORCHESTRA)
        assert len(records) == 1
        assert records[0].city == ""
        assert records[0].show == ""


class TestCardExtraction:
    """Test the card/list fallback."""

    def test_card_fields_from_class_hooks(self):
        soup = parse(
            '<div class="tour-item"><span class="date">20.05.2025</span>'
            '<span class="city">Prague</span><span class="country">Czech Republic</span>'
            '<h3>Gala</h3></div>'
        )
        records = extract_from_cards(soup, "", ORCHESTRA)

        assert len(records) == 1
        assert records[0].date == datetime(2025, 5, 20)
        assert records[0].city == "Prague"
        assert records[0].country == "Czech Republic"
        assert records[0].show == "Gala"

    def test_attribute_hooks_win_over_class_hooks(self):
        soup = parse(
            '<div data-qa="tour-item"><span class="date">01.01.2025</span>'
            '<span data-qa="tour-date">02.02.2025</span>'
            '<span data-qa="tour-city">Oslo</span></div>'
        )
        records = extract_from_cards(soup, "Norway", ORCHESTRA)
        assert records[0].date == datetime(2025, 2, 2)
        assert records[0].country == "Norway"

    def test_date_from_text_as_last_resort(self):
        soup = parse('<ul><li class="event-item">Concert on 7/6/2025 in Oslo</li></ul>')
        records = extract_from_cards(soup, "Norway", ORCHESTRA)
        assert records[0].date == datetime(2025, 6, 7)
        assert records[0].city == ""

    def test_first_pattern_with_records_wins(self):
        soup = parse(
            '<div class="tour-item"><span class="date">01.03.2025</span></div>'
            '<div class="event-card"><span class="date">02.03.2025</span></div>'
        )
        records = extract_from_cards(soup, "", ORCHESTRA)
        assert [r.date.day for r in records] == [1]

    def test_pattern_without_valid_dates_falls_through(self):
        soup = parse(
            '<div class="tour-item"><span class="date">TBA</span></div>'
            '<div class="event-card"><span class="date">02.03.2025</span></div>'
        )
        records = extract_from_cards(soup, "", ORCHESTRA)
        assert [r.date.day for r in records] == [2]

    def test_no_cards(self):
        assert extract_from_cards(parse("<p>Nothing here</p>"), "", ORCHESTRA) == []


class TestStrategies:
    """Test the ordered strategy list."""

    def test_first_non_empty_wins(self):
        calls = []

        def empty(soup):
            calls.append("empty")
            return []

        def found(soup):
            calls.append("found")
            return ["record"]

        def never(soup):
            calls.append("never")
            return ["other"]

        strategies = [ExtractionStrategy("a", empty), ExtractionStrategy("b", found), ExtractionStrategy("c", never)]
        assert run_strategies(parse(""), strategies) == ["record"]
        assert calls == ["empty", "found"]

    def test_failing_strategy_skipped(self):
        def broken(soup):
            raise ValueError("bad selector")

        strategies = [ExtractionStrategy("broken", broken), ExtractionStrategy("ok", lambda soup: ["x"])]
        assert run_strategies(parse(""), strategies) == ["x"]

    def test_all_empty(self):
        assert run_strategies(parse(""), [ExtractionStrategy("a", lambda soup: [])]) == []

    def test_strategy_lists_are_declarative(self):
        tables = table_strategies(("table", ".table"), "Germany", ORCHESTRA)
        cards = card_strategies("Germany", ORCHESTRA)
        assert [s.name for s in tables] == ["table:table", "table:.table"]
        assert [s.name for s in cards] == [f"card:{selector}" for selector in CARD_SELECTORS]

    def test_tables_before_cards(self):
        soup = parse(
            '<div class="tour-item"><span class="date">01.01.2025</span></div>'
            "<table><tr><th>Date</th></tr><tr><td>05.05.2025</td></tr></table>"
        )
        records = extract_shows(soup, ("table",), "Germany", ORCHESTRA)
        assert [r.date for r in records] == [datetime(2025, 5, 5)]

    def test_cards_when_table_unusable(self):
        soup = parse(
            '<div class="tour-item"><span class="date">01.01.2025</span></div>'
            "<table><tr><th>City</th></tr><tr><td>Berlin</td></tr></table>"
        )
        records = extract_shows(soup, ("table",), "Germany", ORCHESTRA)
        assert [r.date for r in records] == [datetime(2025, 1, 1)]

    def test_multiple_tables_concatenated(self):
        soup = parse(
            "<table><tr><th>Date</th></tr><tr><td>01.01.2025</td></tr></table>"
            "<table><tr><th>Date</th></tr><tr><td>02.01.2025</td></tr></table>"
        )
        records = extract_shows(soup, ("table",), "Germany", ORCHESTRA)
        assert [r.date.day for r in records] == [1, 2]
