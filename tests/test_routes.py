import pytest

from converter_api.conversion import KNOWN_PAIRS, Route, UnsupportedConversion, normalize_format, route_for, supported_targets

EXPECTED_ROUTES = {
    ("docx", "pdf"): Route.OFFICE_TO_PDF,
    ("doc", "pdf"): Route.OFFICE_TO_PDF,
    ("xlsx", "pdf"): Route.OFFICE_TO_PDF,
    ("xls", "pdf"): Route.OFFICE_TO_PDF,
    ("pptx", "pdf"): Route.OFFICE_TO_PDF,
    ("ppt", "pdf"): Route.OFFICE_TO_PDF,
    ("pdf", "docx"): Route.PDF_TO_OFFICE,
    ("pdf", "xlsx"): Route.PDF_TO_OFFICE,
    ("pdf", "pptx"): Route.PDF_TO_OFFICE,
    ("pdf", "png"): Route.PDF_TO_IMAGE,
    ("pdf", "jpg"): Route.PDF_TO_IMAGE,
    ("pdf", "jpeg"): Route.PDF_TO_IMAGE,
    ("jpg", "pdf"): Route.IMAGE_TO_PDF,
    ("jpeg", "pdf"): Route.IMAGE_TO_PDF,
    ("png", "pdf"): Route.IMAGE_TO_PDF,
}


def test_known_pairs_table_is_exactly_the_documented_set():
    assert dict(KNOWN_PAIRS) == EXPECTED_ROUTES


@pytest.mark.parametrize("pair,route", sorted(EXPECTED_ROUTES.items()))
def test_route_for_known_pairs(pair, route):
    assert route_for(*pair) is route


@pytest.mark.parametrize(
    "pair",
    [("txt", "pdf"), ("pdf", "txt"), ("docx", "xlsx"), ("png", "jpg"), ("pdf", "pdf"), ("", "pdf")],
)
def test_route_for_unknown_pairs(pair):
    with pytest.raises(UnsupportedConversion) as exc:
        route_for(*pair)
    assert exc.value.source == pair[0]
    assert exc.value.target == pair[1]


@pytest.mark.parametrize(
    "raw,expected",
    [("DOCX", "docx"), (".pdf", "pdf"), (" .JPG ", "jpg"), ("png", "png"), (None, ""), ("", "")],
)
def test_normalize_format(raw, expected):
    assert normalize_format(raw) == expected


def test_normalize_format_is_idempotent():
    once = normalize_format(".PPTX")
    assert normalize_format(once) == once == "pptx"


def test_known_pairs_is_read_only():
    with pytest.raises(TypeError):
        KNOWN_PAIRS[("txt", "pdf")] = Route.OFFICE_TO_PDF  # type: ignore[index]


def test_supported_targets():
    assert supported_targets(".PDF") == ["docx", "xlsx", "pptx", "png", "jpg", "jpeg"]
    assert supported_targets("docx") == ["pdf"]
    assert supported_targets("txt") == []
