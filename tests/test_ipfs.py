"""Tests for gateway resolution and the pinning client."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from ipfs import (
    DEFAULT_GATEWAY, PinningClient, PinningCredentialsError, PinningError, resolve_gateway_url
)

def _response(status_code=200, payload=None, text=''):
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response

def test_resolve_ipfs_uri():
    assert resolve_gateway_url('ipfs://QmCid') == f"{DEFAULT_GATEWAY}QmCid"

def test_resolve_passes_http_urls_through():
    url = 'https://example.com/a.png'
    assert resolve_gateway_url(url) == url

def test_resolve_empty():
    assert resolve_gateway_url(None) == ''
    assert resolve_gateway_url('') == ''

def test_resolve_custom_gateway():
    assert resolve_gateway_url('ipfs://QmCid/meta.json', 'https://ipfs.io/ipfs/') == 'https://ipfs.io/ipfs/QmCid/meta.json'

def test_pin_listing_assets():
    session = MagicMock()
    session.post.side_effect = [
        _response(payload={'IpfsHash': 'QmImage'}),
        _response(payload={'IpfsHash': 'QmMeta'})
    ]
    client = PinningClient('jwt-token', session=session)

    result = client.pin_listing_assets(b'png-bytes', 'cat.png', 'image/png', 'Blue Cat', 'A cat', '0.1')

    assert result == {
        'title': 'Blue Cat',
        'description': 'A cat',
        'price': '0.1',
        'imageURI': f"{DEFAULT_GATEWAY}QmImage",
        'tokenURI': f"{DEFAULT_GATEWAY}QmMeta",
        'imageCID': 'QmImage',
        'tokenCID': 'QmMeta'
    }

    file_call, json_call = session.post.call_args_list
    assert file_call.args[0] == 'https://api.pinata.cloud/pinning/pinFileToIPFS'
    assert file_call.kwargs['headers']['Authorization'] == 'Bearer jwt-token'
    assert file_call.kwargs['files']['file'] == ('cat.png', b'png-bytes', 'image/png')

    assert json_call.args[0] == 'https://api.pinata.cloud/pinning/pinJSONToIPFS'
    metadata = json.loads(json_call.kwargs['data'])
    assert metadata == {
        'name': 'Blue Cat',
        'description': 'A cat',
        'image': f"{DEFAULT_GATEWAY}QmImage",
        'properties': {'price': '0.1'}
    }

def test_missing_jwt():
    session = MagicMock()
    client = PinningClient(None, session=session)
    with pytest.raises(PinningCredentialsError, match='PINATA_JWT missing'):
        client.pin_file(b'x', 'x.png')
    session.post.assert_not_called()

def test_image_failure_skips_metadata_upload():
    session = MagicMock()
    session.post.return_value = _response(status_code=401, text='unauthorized')
    client = PinningClient('jwt-token', session=session)

    with pytest.raises(PinningError) as exc_info:
        client.pin_listing_assets(b'x', 'x.png', 'image/png', 'Title')

    assert exc_info.value.status_code == 401
    assert session.post.call_count == 1

def test_response_without_hash():
    session = MagicMock()
    session.post.return_value = _response(payload={'unexpected': True})
    client = PinningClient('jwt-token', session=session)
    with pytest.raises(PinningError, match='invalid response'):
        client.pin_json({'name': 'x'})

def test_transport_failure():
    session = MagicMock()
    session.post.side_effect = requests.exceptions.ConnectionError('refused')
    client = PinningClient('jwt-token', session=session)
    with pytest.raises(PinningError, match='upload failed'):
        client.pin_file(b'x', 'x.png')
