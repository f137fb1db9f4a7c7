"""
Unit tests for pagination link rendering.
"""

from pressframe.db.pagination import LengthAwarePage, build_links, page_url


def labels(links):
    return [link["label"] for link in links]


class TestPageUrl:
    """Tests for page_url()."""

    def test_keeps_other_query_params(self):
        """Test that filters survive in page links."""
        url = page_url("/api/v1/blogs", {"status": "draft"}, "page", 3)
        assert url == "/api/v1/blogs?status=draft&page=3"

    def test_replaces_existing_page(self):
        """Test that the current page parameter is overwritten."""
        assert page_url("/x", {"page": "9"}, "page", 2) == "/x?page=2"


class TestBuildLinks:
    """Tests for the numbered link window."""

    def test_small_page_count(self):
        """Test that every page is listed when few exist."""
        links = build_links(2, 3, "/p", {})

        assert labels(links) == ["&laquo; Previous", "1", "2", "3", "Next &raquo;"]
        assert [link["active"] for link in links] == [False, False, True, False, False]

    def test_window_with_gaps(self):
        """Test ellipses on both sides of the window."""
        links = build_links(9, 20, "/p", {})

        assert labels(links) == [
            "&laquo; Previous", "1", "...",
            "6", "7", "8", "9", "10", "11", "12",
            "...", "20", "Next &raquo;",
        ]
        gap = links[2]
        assert gap["url"] is None

    def test_first_page_has_no_previous(self):
        """Test the first page."""
        links = build_links(1, 2, "/p", {})
        assert labels(links) == ["1", "2", "Next &raquo;"]

    def test_last_page_has_no_next(self):
        """Test the last page."""
        links = build_links(5, 5, "/p", {})
        assert labels(links)[-1] == "5"
        assert labels(links)[0] == "&laquo; Previous"


class TestPageSerialization:
    """Tests for LengthAwarePage.to_dict()."""

    def test_to_dict_uses_from_key(self):
        """Test that from_ is serialized as "from"."""
        page = LengthAwarePage(
            data=[{"id": 1}],
            current_page=1,
            per_page=10,
            total=1,
            last_page=1,
            from_=1,
            to=1,
            has_more_pages=False,
            prev_page=None,
            next_page=None,
        )

        data = page.to_dict()
        assert data["from"] == 1
        assert "from_" not in data
        assert data["data"] == [{"id": 1}]
