import pytest

from arxiv_ids import normalize_arxiv_id, to_abs_url, to_pdf_url


@pytest.mark.parametrize("value", [
    "2503.01078",
    "2503.01078v2",
    "2503.01078V12",
    "  2503.01078v1  ",
    "https://arxiv.org/abs/2503.01078",
    "http://arxiv.org/abs/2503.01078v3",
    "https://arxiv.org/pdf/2503.01078",
    "https://arxiv.org/pdf/2503.01078v2.pdf",
    "https://arxiv.org/html/2503.01078v1",
    "https://arxiv.org/html/2503.01078v1/",
    "https://arxiv.org/abs/2503.01078?context=cs.RO",
    "https://arxiv.org/abs/2503%2E01078",
])
def test_variants_normalize_to_same_id(value: str) -> None:
    assert normalize_arxiv_id(value) == "2503.01078"


def test_pdf_url_example() -> None:
    assert normalize_arxiv_id("https://arxiv.org/pdf/2503.01078v2.pdf") == "2503.01078"


def test_five_digit_and_four_digit_suffixes() -> None:
    assert normalize_arxiv_id("2401.1234") == "2401.1234"
    assert normalize_arxiv_id("https://arxiv.org/abs/2401.12345v4") == "2401.12345"


@pytest.mark.parametrize("value", [
    None,
    "",
    "   ",
    "not an id",
    "25031.01078",
    "2503.010",
    "2503.010789",
    "cs/0112017",
    "https://arxiv.org/list/cs.RO/recent",
    "https://example.org/abs/2503.01078",
    "https://arxiv.org/abs/",
    "https://arxiv.org/abs/%ZZ",
    12345,
])
def test_unrecognized_input_returns_none(value) -> None:
    assert normalize_arxiv_id(value) is None


def test_url_builders() -> None:
    assert to_abs_url("https://arxiv.org/pdf/2503.01078v2.pdf") == "https://arxiv.org/abs/2503.01078"
    assert to_abs_url("garbage") is None
    assert to_pdf_url("2503.01078") == "https://arxiv.org/pdf/2503.01078"
