"""Unit tests for handle, domain and parameter validation."""

import pytest

from fedifetch.errors import (
    InvalidDomainError,
    InvalidIdentifierError,
    InvalidParameterError,
)
from fedifetch.validation import (
    normalize_handle,
    validate_domain,
    validate_limit,
    validate_query,
)


class TestNormalizeHandle:
    """Tests for normalize_handle."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("handle", "expected"),
        [
            ("alice@mastodon.example", ("alice", "mastodon.example")),
            ("@alice@mastodon.example", ("alice", "mastodon.example")),
            ("Alice@Mastodon.Example", ("Alice", "mastodon.example")),
            ("a.b-c_d@sub.domain.example", ("a.b-c_d", "sub.domain.example")),
        ],
    )
    def test_valid(self, handle: str, expected: tuple[str, str]) -> None:
        """Test accepted handle shapes."""
        assert normalize_handle(handle) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "handle",
        [
            "alice",
            "alice@localhost",
            "@@alice@mastodon.example",
            "alice@mastodon.example/path",
            "ali ce@mastodon.example",
            "alice@-bad.example",
            "alice@mastodon.example\n",
        ],
    )
    def test_invalid_format(self, handle: str) -> None:
        """Test rejected handle shapes."""
        with pytest.raises(InvalidIdentifierError, match="Invalid identifier format"):
            normalize_handle(handle)

    @pytest.mark.unit
    @pytest.mark.parametrize("handle", ["a@", "a" * 300 + "@" + "b" * 20 + ".example"])
    def test_invalid_length(self, handle: str) -> None:
        """Test the overall length bounds."""
        with pytest.raises(InvalidIdentifierError, match="Invalid identifier length"):
            normalize_handle(handle)


class TestValidateDomain:
    """Tests for validate_domain."""

    @pytest.mark.unit
    def test_lowercases(self) -> None:
        """Test that the domain is normalized."""
        assert validate_domain("Mastodon.Social") == "mastodon.social"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "domain",
        [
            "",
            "localhost",
            "a..b",
            "-a.example",
            "a.example/",
            "a b.example",
            "social.example\n",
        ],
    )
    def test_invalid(self, domain: str) -> None:
        """Test rejected domains."""
        with pytest.raises(InvalidDomainError, match="Invalid domain format"):
            validate_domain(domain)

    @pytest.mark.unit
    def test_too_long(self) -> None:
        """Test the 253 character ceiling."""
        domain = ".".join(["a" * 60] * 5)
        with pytest.raises(InvalidDomainError):
            validate_domain(domain)


class TestValidateLimit:
    """Tests for validate_limit."""

    @pytest.mark.unit
    @pytest.mark.parametrize("limit", [1, 20, 100])
    def test_in_range(self, limit: int) -> None:
        """Test accepted limits."""
        assert validate_limit(limit) == limit

    @pytest.mark.unit
    @pytest.mark.parametrize("limit", [0, 101, -1])
    def test_out_of_range(self, limit: int) -> None:
        """Test the 1-100 bounds."""
        with pytest.raises(InvalidParameterError) as exc_info:
            validate_limit(limit)

        assert exc_info.value.message == "Limit must be between 1 and 100"
        assert exc_info.value.details == {"limit": limit}

    @pytest.mark.unit
    def test_bool_rejected(self) -> None:
        """Test that booleans are not accepted as integers."""
        with pytest.raises(InvalidParameterError, match="must be an integer"):
            validate_limit(True)


class TestValidateQuery:
    """Tests for validate_query."""

    @pytest.mark.unit
    def test_strips(self) -> None:
        """Test that surrounding whitespace is removed."""
        assert validate_query("  python  ") == "python"

    @pytest.mark.unit
    def test_empty(self) -> None:
        """Test that blank queries are rejected."""
        with pytest.raises(InvalidParameterError, match="Query cannot be empty"):
            validate_query(" \t ")

    @pytest.mark.unit
    def test_too_long(self) -> None:
        """Test the 500 character ceiling after trimming."""
        assert validate_query(" " + "x" * 500 + " ") == "x" * 500
        with pytest.raises(InvalidParameterError, match="maximum 500 characters"):
            validate_query("x" * 501)
