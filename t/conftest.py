import pytest
import requests

""" Shared fixtures for the eudr tests.

Nothing here talks to the network: clients are given a FakeSession, which records
what would have been posted and answers with canned `requests.Response` objects.

Run from the repository root with:

```
pytest t/
```
"""

SOAP_ENV = "http://schemas.xmlsoap.org/soap/envelope/"


class FakeSession():
    """ Stands in for `requests`: records every post and replays the queued responses in order. """

    def __init__(self, *responses, exception = None):
        self.responses = list(responses)
        self.exception = exception
        self.calls = []

    def post(self, url, headers = None, data = None, timeout = None, verify = None):
        self.calls.append({
            'url': url,
            'headers': headers,
            'data': data,
            'timeout': timeout,
            'verify': verify,
        })
        if self.exception:
            raise self.exception
        return(self.responses.pop(0))


def http_response(status, body, reason = None):
    response = requests.Response()
    response.status_code = status
    response.reason = reason or ('OK' if status < 400 else 'Error')
    response._content = body.encode('utf-8') if type(body) is str else body
    response.encoding = 'utf-8'
    return(response)


def soap_envelope(body, prefix = 'S'):
    return(
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<{prefix}:Envelope xmlns:{prefix}="{SOAP_ENV}">'
        f'<{prefix}:Body>{body}</{prefix}:Body>'
        f'</{prefix}:Envelope>'
    )


def soap_fault(faultstring, detail = '', faultcode = 'S:Server'):
    detail_xml = f'<detail>{detail}</detail>' if detail else ''
    return(soap_envelope(
        f'<S:Fault><faultcode>{faultcode}</faultcode><faultstring>{faultstring}</faultstring>{detail_xml}</S:Fault>'
    ))


@pytest.fixture
def settings():
    return({
        'username': 'test-user',
        'password': 'test-authentication-key',
        'client-id': 'eudr-test',
    })


@pytest.fixture
def soap():
    """ The XML builders, for tests that need to write their own responses. """
    class Builders():
        envelope = staticmethod(soap_envelope)
        fault = staticmethod(soap_fault)
        response = staticmethod(http_response)
    return(Builders)


@pytest.fixture
def session():
    """ Factory for a FakeSession: `session(response, ...)` or `session(exception = err)`. """
    return(FakeSession)
