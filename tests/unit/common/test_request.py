import pytest
from starlette.requests import Request

from src.common.request import get_client_ip_address, get_user_ip_address_from_header, log_level_for


def make_request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = ('10.0.0.9', 5123)):
    raw_headers = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request({'type': 'http', 'method': 'GET', 'path': '/', 'headers': raw_headers, 'client': client})


@pytest.mark.parametrize(
    'header, expected',
    [
        (None, ''),
        ('', ''),
        ('203.0.113.7', '203.0.113.7'),
        (' 203.0.113.7 , 10.0.0.1, 10.0.0.2', '203.0.113.7'),
    ],
)
def test_forwarded_header(header, expected):
    assert get_user_ip_address_from_header(header) == expected


def test_client_ip_prefers_forwarded_address():
    request = make_request({'X-Forwarded-For': '203.0.113.7, 10.0.0.1'})
    assert get_client_ip_address(request) == '203.0.113.7'


def test_client_ip_falls_back_to_peer():
    assert get_client_ip_address(make_request()) == '10.0.0.9'
    assert get_client_ip_address(make_request(client=None)) == 'unknown'


@pytest.mark.parametrize('status_code, level', [(200, 'INFO'), (302, 'INFO'), (401, 'WARNING'), (503, 'ERROR')])
def test_log_level_for(status_code, level):
    assert log_level_for(status_code) == level
