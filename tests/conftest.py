"""Common test fixtures"""

from http import HTTPStatus

import pytest
import requests

from shapetrees.attributes import ResourceAttributes
from shapetrees.http import DELETE, GET, DocumentResponse, HttpRequest, ShapeTreeContext

ST = 'http://www.w3.org/ns/shapetrees#'
LDP = 'http://www.w3.org/ns/ldp#'

PROJECTS_URL = 'http://pod.example/data/projects/'
PROJECTS_MANAGER_URL = 'http://pod.example/data/projects/.shapetree'
PROJECT_URL = 'http://pod.example/data/projects/project-1/'
PROJECT_MANAGER_URL = 'http://pod.example/data/projects/project-1/.shapetree'
MISSING_URL = 'http://pod.example/data/projects/project-404/'
PROJECTS_TREE = 'http://shapetrees.example/#projectsTree'
PROJECT_TREE = 'http://shapetrees.example/#projectTree'

PROJECTS_MANAGER_TURTLE = f'''
@prefix st: <{ST}> .

<{PROJECTS_MANAGER_URL}> a st:Manager ;
    st:hasAssignment <{PROJECTS_MANAGER_URL}#ln1> .

<{PROJECTS_MANAGER_URL}#ln1> a st:Assignment ;
    st:assigns <{PROJECTS_TREE}> ;
    st:manages <{PROJECTS_URL}> ;
    st:hasRootAssignment <{PROJECTS_MANAGER_URL}#ln1> .
'''

PROJECTS_CONTAINER_TURTLE = f'''
@prefix ldp: <{LDP}> .

<{PROJECTS_URL}> a ldp:BasicContainer ;
    ldp:contains <{PROJECTS_URL}project-2/>, <{PROJECTS_URL}project-1/> .
'''


def link(url: str, rel: str) -> str:
    return f'<{url}>; rel="{rel}"'


def make_response(status_code: int = 200, headers: dict = None, body: str = None) -> DocumentResponse:
    """Build a `DocumentResponse`. Header values may be strings or lists of
    strings."""
    values = {name: [value] if isinstance(value, str) else value for name, value in (headers or {}).items()}
    return DocumentResponse(attributes=ResourceAttributes(values=values), body=body, status_code=status_code)


class FakeHttpClient:
    """`HttpClient` that serves canned responses by method and URL, and records
    every request it receives. Unknown GETs are "404 Not Found"; other unknown
    requests succeed."""

    def __init__(self):
        self.responses: dict[tuple[str, str], DocumentResponse] = {}
        self.requests: list[HttpRequest] = []

    def add(self, method: str, url: str, status_code: int = 200, headers: dict = None, body: str = None):
        self.responses[(method, url)] = make_response(status_code, headers, body)

    def fetch_shapetree_response(self, request: HttpRequest) -> DocumentResponse:
        self.requests.append(request)
        key = (request.method, str(request.url))
        if key in self.responses:
            return self.responses[key]
        if request.method == GET:
            return make_response(HTTPStatus.NOT_FOUND, body='')
        if request.method == DELETE:
            return make_response(HTTPStatus.NO_CONTENT, body='')
        return make_response(HTTPStatus.CREATED, body='')

    def writes(self) -> list[HttpRequest]:
        return [r for r in self.requests if r.method != GET]


@pytest.fixture
def context():
    return ShapeTreeContext(authorization_header_value='Bearer abcd-1234')


@pytest.fixture
def http_client():
    return FakeHttpClient()


@pytest.fixture
def pod(http_client):
    """A pod with a managed container (`PROJECTS_URL`) that contains one
    unmanaged container (`PROJECT_URL`)."""
    http_client.add(
        GET, PROJECTS_URL,
        headers={
            'Content-Type': 'text/turtle',
            'Link': [
                link(f'{LDP}BasicContainer', 'type'),
                link(PROJECTS_MANAGER_URL, f'{ST}managedBy'),
            ],
        },
        body=PROJECTS_CONTAINER_TURTLE,
    )
    http_client.add(
        GET, PROJECTS_MANAGER_URL,
        headers={
            'Content-Type': 'text/turtle',
            'Link': link(PROJECTS_URL, f'{ST}manages'),
        },
        body=PROJECTS_MANAGER_TURTLE,
    )
    http_client.add(
        GET, PROJECT_URL,
        headers={
            'Content-Type': 'text/turtle',
            'Link': [
                link(f'{LDP}BasicContainer', 'type'),
                link(PROJECT_MANAGER_URL, f'{ST}managedBy'),
            ],
        },
        body='',
    )
    http_client.add(
        GET, PROJECT_MANAGER_URL,
        status_code=404,
        headers={'Content-Type': 'text/plain'},
        body='Not Found',
    )
    http_client.add(
        GET, MISSING_URL,
        status_code=404,
        headers={'Link': link(MISSING_URL + '.shapetree', f'{ST}managedBy')},
        body='Not Found',
    )
    return http_client


@pytest.fixture
def monkeypatch_request(monkeypatch):
    def _monkeypatch_request(response):
        if isinstance(response, type):
            response = response()
        monkeypatch.setattr(requests.Session, 'request', lambda *args, **kwargs: response)
    return _monkeypatch_request
