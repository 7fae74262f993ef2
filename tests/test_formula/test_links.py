"""Tests for the [[token]] link lexer."""

from cellgraph.formula import get_link_at_position, parse_cell_links


class TestParseCellLinks:
    """Tests for parse_cell_links."""

    def test_single_link(self):
        """Test a single link with its position."""
        links = parse_cell_links("Check out [[A7]] for more info")

        assert len(links) == 1
        assert links[0].target_id == "A7"
        assert links[0].start == 10
        assert links[0].end == 16
        assert links[0].full_text == "[[A7]]"

    def test_multiple_links_keep_order_and_duplicates(self):
        """Test links come back in text order, duplicates included."""
        links = parse_cell_links("[[B2]] + [[A7]] * [[B2]]")
        assert [link.target_id for link in links] == ["B2", "A7", "B2"]

    def test_token_is_trimmed(self):
        """Test whitespace inside the brackets is stripped."""
        links = parse_cell_links("[[ A7 ]]")
        assert links[0].target_id == "A7"
        assert links[0].full_text == "[[ A7 ]]"

    def test_no_links(self):
        """Test text without links and empty brackets."""
        assert parse_cell_links("1 + 2") == []
        assert parse_cell_links("[[]]") == []
        assert parse_cell_links("[A7]") == []


class TestLinkAtPosition:
    """Tests for get_link_at_position."""

    def test_inside_link(self):
        """Test a position inside a link returns it."""
        link = get_link_at_position("Check out [[A7]] for more info", 12)
        assert link is not None
        assert link.target_id == "A7"

    def test_outside_link(self):
        """Test positions outside any link return None."""
        text = "Check out [[A7]] for more info"
        assert get_link_at_position(text, 0) is None
        assert get_link_at_position(text, 16) is None

    def test_link_boundaries(self):
        """Test start is inclusive and end is exclusive."""
        text = "[[A7]]"
        assert get_link_at_position(text, 0) is not None
        assert get_link_at_position(text, 5) is not None
        assert get_link_at_position(text, 6) is None
