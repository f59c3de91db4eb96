"""Tests for wire contract models."""

import pytest

from common.checksum import compute_digest
from common.exceptions import WireContractError
from common.protocol import (
    CatalogPage,
    CompleteRequest,
    InitRequest,
    InitResponse,
    ManifestResponse,
    parse_model,
)
from common.types import Manifest, ManifestChunk

DIGEST = compute_digest(b'x')


def test_init_request_uses_camel_case_and_drops_absent_fields():
    request = InitRequest(file_size=10, filename='a.mp4', file_hash=DIGEST, total_chunks=2)

    assert request.to_wire() == {
        'fileSize': 10,
        'filename': 'a.mp4',
        'fileHash': DIGEST,
        'totalChunks': 2,
    }


def test_init_request_accepts_wire_names():
    request = parse_model(InitRequest, {
        'fileSize': 10, 'filename': 'a.mp4', 'fileHash': DIGEST, 'totalChunks': 1, 'fileContent': 'hi'
    })
    assert request.file_content == 'hi'


@pytest.mark.parametrize("payload", [
    {'fileSize': 0, 'filename': 'a.mp4', 'fileHash': DIGEST, 'totalChunks': 1},
    {'fileSize': 1, 'filename': '', 'fileHash': DIGEST, 'totalChunks': 1},
    {'fileSize': 1, 'filename': 'a.mp4', 'fileHash': 'abc', 'totalChunks': 1},
    {'fileSize': 1, 'filename': 'a.mp4', 'fileHash': DIGEST, 'totalChunks': 0},
    {'fileSize': 1, 'filename': 'a.mp4', 'fileHash': DIGEST, 'totalChunks': 1, 'owner': 'x'},
])
def test_init_request_rejects_invalid_payloads(payload):
    with pytest.raises(WireContractError):
        parse_model(InitRequest, payload)


def test_init_response_requires_upload_id():
    assert parse_model(InitResponse, {'uploadId': 'u'}).upload_id == 'u'
    with pytest.raises(WireContractError):
        parse_model(InitResponse, {'uploadId': ''})


def test_complete_request_wire_form():
    assert CompleteRequest(upload_id='u').to_wire() == {'uploadId': 'u'}


def test_manifest_response_round_trips_manifest():
    manifest = Manifest(
        asset_id='a', file_name='talk.mp4', file_size=3, file_hash=DIGEST,
        chunks=(ManifestChunk(1, DIGEST), ManifestChunk(2, DIGEST)),
    )
    wire = ManifestResponse.from_manifest(manifest).to_wire()

    assert wire['fileId'] == 'a'
    assert wire['chunks'] == [{'index': 1, 'hash': DIGEST}, {'index': 2, 'hash': DIGEST}]
    assert parse_model(ManifestResponse, wire).to_manifest() == manifest


def test_manifest_response_lowercases_digests():
    body = {
        'fileId': 'a', 'fileName': 'f', 'fileSize': 1, 'fileHash': DIGEST.upper(),
        'chunks': [{'index': 1, 'hash': DIGEST.upper()}],
    }
    manifest = parse_model(ManifestResponse, body).to_manifest()
    assert manifest.file_hash == DIGEST
    assert manifest.chunks[0].digest == DIGEST


def test_catalog_page_validation():
    page = parse_model(CatalogPage, {
        'items': [{'id': 'a', 'name': 'talk.mp4'}], 'page': 0, 'size': 10, 'total': 1
    })
    assert page.items[0].content is None

    with pytest.raises(WireContractError):
        parse_model(CatalogPage, {'items': [], 'page': -1, 'size': 10, 'total': 0})
