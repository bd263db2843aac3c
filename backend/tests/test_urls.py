"""Tests for URL list parsing."""

from pricetrack.scrapers.urls import (
    CategorisedURL,
    derive_category_from_url,
    optimise_query_parameters,
    parse_url_lines,
)

MILK_URL = "https://www.paknsave.co.nz/shop/category/fresh-foods-and-bakery/dairy--eggs/fresh-milk"


def parse(*lines, increment=1):
    return parse_url_lines(lines, "paknsave.co.nz", "", "pg=", increment)


class TestDeriveCategory:
    def test_last_path_segment(self):
        assert derive_category_from_url(MILK_URL + "?pg=1") == "fresh-milk"
        assert derive_category_from_url(MILK_URL + "/") == "fresh-milk"

    def test_no_path(self):
        assert derive_category_from_url("asdf") == "Uncategorised"


class TestOptimiseQueryParameters:
    def test_query_replaced(self):
        assert optimise_query_parameters(MILK_URL + "?pg=4&sort=asc", "pg=1") == MILK_URL + "?pg=1"
        assert optimise_query_parameters(MILK_URL, "") == MILK_URL + "?"

    def test_search_urls_kept(self):
        for url in (
            "https://www.paknsave.co.nz/shop/search?pg=1&q=milk",
            "https://www.paknsave.co.nz/shop/category/pantry?f=tags",
        ):
            assert optimise_query_parameters(url, "pg=1") == url


class TestParseUrlLines:
    def test_single_page(self):
        assert parse(MILK_URL) == [CategorisedURL(MILK_URL + "?", "fresh-milk")]

    def test_multiple_pages(self):
        urls = parse(MILK_URL + "?pg=1 pages=3")
        assert [u.url for u in urls] == [
            MILK_URL + "?",
            MILK_URL + "?pg=2",
            MILK_URL + "?pg=3",
        ]
        assert {u.category for u in urls} == {"fresh-milk"}

    def test_large_increment(self):
        urls = parse_url_lines([MILK_URL + " pages=3"], "paknsave.co.nz", "", "start=", 32)
        assert [u.url for u in urls] == [
            MILK_URL + "?",
            MILK_URL + "?start=32",
            MILK_URL + "?start=64",
        ]

    def test_invalid_page_counts(self):
        for param in ("pages=1", "pages=20", "pages=abc"):
            assert len(parse(f"{MILK_URL} {param}")) == 1

    def test_category_override(self):
        urls = parse(f"{MILK_URL} category=milk pages=2")
        assert [u.category for u in urls] == ["milk", "milk"]

    def test_skips_comments_and_other_sites(self):
        urls = parse(
            "# " + MILK_URL,
            "// " + MILK_URL,
            "https://www.countdown.co.nz/shop/browse/fridge",
            "",
            MILK_URL,
        )
        assert len(urls) == 1
