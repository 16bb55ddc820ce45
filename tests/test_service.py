import asyncio

import pytest

from converter_api.conversion import (
    ConversionRequest,
    ConversionService,
    ExternalToolFailure,
    RenderFailure,
    UnsupportedConversion,
)
from converter_api.conversion.adapters import Argon2Security, LocalHistoryStorage


@pytest.fixture()
def service(fakes):
    renderer, rasterizer, documents = fakes
    return ConversionService(renderer=renderer, rasterizer=rasterizer, documents=documents)


def _route_taken(fakes):
    renderer, rasterizer, documents = fakes
    taken = []
    if renderer.calls:
        taken.append("office")
    if documents.office_calls:
        taken.append("pdf-library")
    if rasterizer.calls:
        taken.append("rasterizer")
    if documents.image_calls:
        taken.append("image-assembly")
    return taken


@pytest.mark.parametrize(
    "source,target,expected",
    [
        ("docx", "pdf", "office"),
        ("doc", "pdf", "office"),
        ("xlsx", "pdf", "office"),
        ("xls", "pdf", "office"),
        ("pptx", "pdf", "office"),
        ("ppt", "pdf", "office"),
        ("pdf", "docx", "pdf-library"),
        ("pdf", "xlsx", "pdf-library"),
        ("pdf", "pptx", "pdf-library"),
        ("pdf", "png", "rasterizer"),
        ("pdf", "jpg", "rasterizer"),
        ("pdf", "jpeg", "rasterizer"),
        ("jpg", "pdf", "image-assembly"),
        ("jpeg", "pdf", "image-assembly"),
        ("png", "pdf", "image-assembly"),
    ],
)
def test_each_known_pair_takes_its_route(service, fakes, source, target, expected):
    service.convert_request(ConversionRequest.create(b"input", f"file.{source}", source, target))
    assert _route_taken(fakes) == [expected]


def test_formats_are_normalised_before_dispatch(service, fakes):
    renderer, _, _ = fakes
    result = service.convert_request(ConversionRequest.create(b"input", "Report.DOCX", ".DOCX", "PDF"))

    assert renderer.calls == [(b"input", "docx")]
    assert (result.extension, result.mime_type) == (".pdf", "application/pdf")
    assert result.download_name("Report.DOCX") == "Report.pdf"


def test_target_format_reaches_the_route(service, fakes):
    _, rasterizer, documents = fakes
    service.convert_request(ConversionRequest.create(b"pdf", "a.pdf", "pdf", "JPEG"))
    service.convert_request(ConversionRequest.create(b"pdf", "a.pdf", "pdf", "pptx"))
    assert rasterizer.calls == [(b"pdf", "jpeg")]
    assert documents.office_calls == [(b"pdf", "pptx")]


@pytest.mark.parametrize("pair", [("txt", "pdf"), ("pdf", "gif"), ("docx", "xlsx"), ("", "pdf")])
def test_unknown_pair_fails_without_invoking_any_route(service, fakes, pair):
    with pytest.raises(UnsupportedConversion):
        service.convert_request(ConversionRequest.create(b"input", "file", *pair))
    assert _route_taken(fakes) == []


def test_archive_result_is_named_zip(fakes):
    renderer, rasterizer, documents = fakes
    rasterizer.output = b"PK\x03\x04archive"
    service = ConversionService(renderer=renderer, rasterizer=rasterizer, documents=documents)

    result = service.convert_request(ConversionRequest.create(b"pdf", "scan.pdf", "pdf", "png"))

    assert (result.extension, result.mime_type) == (".zip", "application/zip")
    assert result.download_name("scan.pdf") == "scan.zip"


def test_tool_failure_is_annotated_with_route(service, fakes, failing_tool):
    renderer, _, _ = fakes
    renderer.error = failing_tool

    with pytest.raises(ExternalToolFailure) as exc:
        service.convert_request(ConversionRequest.create(b"x", "a.docx", "docx", "pdf"))

    assert exc.value is failing_tool
    assert exc.value.route == "office-to-pdf"
    assert "route=office-to-pdf" in str(exc.value)
    assert "could not be loaded" in str(exc.value)


def test_other_route_errors_propagate_unwrapped(service, fakes):
    renderer, _, _ = fakes
    error = RenderFailure("bad input")
    renderer.error = error

    with pytest.raises(RenderFailure) as exc:
        service.convert_request(ConversionRequest.create(b"x", "a.doc", "doc", "pdf"))
    assert exc.value is error


def test_async_convert_runs_on_worker_thread(service, fakes):
    renderer, _, _ = fakes
    result = asyncio.run(service.convert(b"slides", "deck.pptx", "pptx", "pdf"))

    assert result.data == b"%PDF-1.7 office"
    assert renderer.calls == [(b"slides", "pptx")]


def test_async_convert_rejects_unknown_pair(service, fakes):
    with pytest.raises(UnsupportedConversion):
        asyncio.run(service.convert(b"x", "notes.txt", "txt", "pdf"))
    assert _route_taken(fakes) == []


@pytest.fixture()
def history_service(fakes, tmp_path):
    renderer, rasterizer, documents = fakes
    return ConversionService(
        renderer=renderer,
        rasterizer=rasterizer,
        documents=documents,
        history=LocalHistoryStorage(str(tmp_path)),
        security=Argon2Security(time_cost=1, memory_cost=8),
    )


def test_history_round_trip(history_service, tmp_path):
    result = history_service.convert_request(ConversionRequest.create(b"x", "Budget.xlsx", "xlsx", "pdf"))

    record, token = history_service.save_history("Budget.xlsx", ("xlsx", "pdf"), result)
    loaded = history_service.load_history(record.id)

    assert loaded.data["original_file_name"] == "Budget.xlsx"
    assert loaded.data["file_size"] == len(result.data)
    assert loaded.data["mime_type"] == "application/pdf"
    assert str(loaded.data["created_at"]).endswith("Z")
    assert loaded.download_name() == "Budget.pdf"
    assert "access_token_hash" not in loaded.public()
    assert history_service.verify_token(loaded, token)
    assert not history_service.verify_token(loaded, Argon2Security().new_token())
    assert history_service.read_history_file(loaded) == result.data
    assert (tmp_path / "history" / record.id / "record.json").exists()


def test_history_requires_storage(service):
    assert not service.history_enabled
    with pytest.raises(RuntimeError):
        service.save_history("a.pdf", ("pdf", "png"), None)  # type: ignore[arg-type]
