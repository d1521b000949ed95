import requests

from canvas_cli.errors import (
    CredentialDecodeError,
    ErrorKind,
    NotFound,
    RemoteError,
    TransportError,
    error_from_exception,
    error_from_response,
)

from conftest import DummyResp


def test_kinds_are_distinct():
    assert {NotFound.kind, RemoteError.kind, TransportError.kind, CredentialDecodeError.kind} == {
        ErrorKind.NOT_FOUND, ErrorKind.REMOTE, ErrorKind.TRANSPORT, ErrorKind.CREDENTIAL_DECODE,
    }


def test_with_context_without_status():
    err = TransportError("connection reset").with_context("Failed to upload file")
    assert isinstance(err, TransportError)
    assert err.message == "Failed to upload file: connection reset"


def test_errors_list_messages_joined():
    resp = DummyResp(422, {"errors": [{"message": "too big"}, {"message": "bad type"}]})
    err = error_from_response(resp)
    assert isinstance(err, RemoteError)
    assert err.message == "too big; bad type"


def test_errors_mapping_body():
    resp = DummyResp(400, {"errors": {"title": "is required"}})
    assert error_from_response(resp).message == "title: is required"


def test_http_error_with_response_is_mapped_by_status():
    exc = requests.HTTPError("404 Client Error", response=DummyResp(404))
    assert isinstance(error_from_exception(exc), NotFound)
