import pytest

from certflow.utils.domains import is_wildcard_domain, normalize_wildcard_domain


@pytest.mark.parametrize(
    "style, expected",
    [("dot", ".example.com"), ("bare", "example.com"), ("keep", "*.example.com")],
)
def test_normalize_wildcard_domain(style, expected):
    assert normalize_wildcard_domain("*.example.com", style=style) == expected


def test_plain_domain_is_untouched():
    assert normalize_wildcard_domain(" www.example.com ", style="bare") == "www.example.com"
    assert not is_wildcard_domain("www.example.com")
