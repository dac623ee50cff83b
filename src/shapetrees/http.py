import logging
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import urljoin

from requests import Response, Session
from requests.auth import AuthBase
from requests.exceptions import ConnectionError
from urlobject import URLObject

from shapetrees.attributes import ResourceAttributes
from shapetrees.exceptions import InputError
from shapetrees.namespaces import st

logger = logging.getLogger(__name__)

GET = 'GET'
PUT = 'PUT'
POST = 'POST'
PATCH = 'PATCH'
DELETE = 'DELETE'

METHODS_WITH_BODY = {PUT, POST, PATCH}
METHODS_WITHOUT_BODY = {GET, DELETE}

# headers that a client must not copy from a response onto an outgoing request
RESTRICTED_HEADERS = (
    'connection', 'content-encoding', 'content-length', 'date', 'expect', 'from', 'host', 'keep-alive',
    'transfer-encoding', 'upgrade', 'via', 'warning',
)


class HttpHeader:
    ACCEPT = 'Accept'
    AUTHORIZATION = 'Authorization'
    CONTENT_TYPE = 'Content-Type'
    LINK = 'Link'
    LOCATION = 'Location'
    SLUG = 'Slug'


class LinkRelation:
    DESCRIBED_BY = 'describedby'
    FOCUS_NODE = str(st.FocusNode)
    MANAGED_BY = str(st.managedBy)
    MANAGES = str(st.manages)
    TARGET_SHAPETREE = str(st.TargetShapeTree)
    TYPE = 'type'


@dataclass(frozen=True)
class ShapeTreeContext:
    """Per-operation credentials. The `authorization_header_value`, if set,
    is sent as the `Authorization` header of every request made on behalf of
    the operation."""
    authorization_header_value: Optional[str] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'ShapeTreeContext':
        return cls(authorization_header_value=config.get('AUTHORIZATION', None))


@dataclass
class HttpRequest:
    method: str
    url: str
    headers: ResourceAttributes = field(default_factory=ResourceAttributes)
    body: Optional[str] = None
    content_type: Optional[str] = None

    def __str__(self):
        return f'{self.method} {self.url}'


@dataclass
class DocumentResponse:
    """Status, headers (as `ResourceAttributes`), and body of an HTTP response.
    Also used to report expected failures (e.g., "404 Not Found" when planting
    on a resource that does not exist) without raising an exception."""
    attributes: ResourceAttributes = field(default_factory=ResourceAttributes)
    body: Optional[str] = None
    status_code: int = HTTPStatus.OK

    @classmethod
    def from_response(cls, response: Response) -> 'DocumentResponse':
        """Build a `DocumentResponse` from a Requests `Response`. A combined
        `Link` header is split back into one value per link."""
        attributes = ResourceAttributes()
        for name, value in response.headers.items():
            if name.lower() == HttpHeader.LINK.lower():
                for link in split_link_header(value):
                    attributes.add(name, link)
            else:
                attributes.set(name, value)
        return cls(attributes=attributes, body=response.text, status_code=response.status_code)

    def __str__(self):
        return f'{self.status_code} {self.reason}'

    @property
    def reason(self) -> str:
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ''

    @property
    def exists(self) -> bool:
        """`True` for any 2xx status."""
        return self.status_code // 100 == 2

    @property
    def ok(self) -> bool:
        """`True` for any status below 400."""
        return self.status_code < 400

    @property
    def content_type(self) -> Optional[str]:
        return self.attributes.first_value(HttpHeader.CONTENT_TYPE)


def split_link_header(value: str) -> list[str]:
    """Split a `Link` header value containing several comma-separated links
    into a list of single links."""
    return [link.strip() for link in re.split(r',\s*(?=<)', value) if link.strip()]


class HttpClient(Protocol):
    """[Structural subtype](https://docs.python.org/3/library/typing.html#typing.Protocol)
    for the transport that shape tree operations are carried out with. It must
    execute an `HttpRequest` and return the result as a `DocumentResponse`,
    whatever the status."""
    def fetch_shapetree_response(self, request: HttpRequest) -> DocumentResponse:
        ...


class SessionHeaderAttribute:
    """Descriptor that maps an attribute to a session header name. Requires
    the instance to have a `session` attribute with a `headers` attribute whose
    value is a mapping that supports the methods `get()` and `update()`, plus
    the `del` operator."""

    def __init__(self, header_name: str):
        self.header_name = header_name
        """The HTTP header name"""

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.session.headers.get(self.header_name, None)

    def __set__(self, instance, value):
        if value is not None:
            instance.session.headers.update({self.header_name: str(value)})

    def __delete__(self, instance):
        try:
            del instance.session.headers[self.header_name]
        except KeyError:
            pass


class RequestsHttpClient:
    """`HttpClient` implementation using the
    [Requests](https://requests.readthedocs.io/) library."""
    ua_string = SessionHeaderAttribute('User-Agent')
    """`User-Agent` header value"""
    session: Session
    """Underlying Requests library
    [Session object](https://requests.readthedocs.io/en/latest/user/advanced/#session-objects),
    or a subclass thereof"""

    def __init__(
        self,
        auth: AuthBase = None,
        server_cert: str = None,
        client_cert: str = None,
        client_key: str = None,
        ua_string: str = None,
        timeout: float = None,
        session: Session = None,
    ):
        if session is None:
            # defaults to a basic requests.Session object
            self.session = Session()
        else:
            # otherwise, use the session object as is
            self.session = session

        if auth is not None:
            self.session.auth = auth
        if server_cert is not None:
            self.session.verify = server_cert
        if client_cert is not None:
            # without a key file, the certificate file must also hold the private key
            self.session.cert = client_cert if client_key is None else (client_cert, client_key)

        self.ua_string = ua_string
        self.timeout: Optional[float] = timeout
        """Seconds to wait for the server; `None` waits indefinitely"""

    def request(self, method: str, url: str, **kwargs) -> Response:
        """Send an HTTP request using the configured `session`. Additional
        keyword arguments are passed to the underlying `session.request()`
        method."""
        logger.debug(f'{method} {url}')
        if self.timeout is not None:
            kwargs.setdefault('timeout', self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except ConnectionError as e:
            message = ' '.join(str(arg) for arg in e.args)
            logger.error(message)
            raise RuntimeError(f'Connection error: {message}') from e
        reason = response.reason or HTTPStatus(response.status_code).phrase
        logger.debug(f'{response.status_code} {reason}')
        return response

    def fetch_shapetree_response(self, request: HttpRequest) -> DocumentResponse:
        headers = request.headers.to_headers(*RESTRICTED_HEADERS)
        header_content_type = request.headers.first_value(HttpHeader.CONTENT_TYPE)

        if request.method in METHODS_WITHOUT_BODY:
            data = None
        elif request.method in METHODS_WITH_BODY:
            data = request.body.encode() if request.body is not None else None
            if request.content_type is not None:
                if header_content_type is not None and header_content_type.lower() != request.content_type.lower():
                    raise InputError(
                        f'Headers set Content-Type to "{header_content_type}" '
                        f'but the request content type is "{request.content_type}"'
                    )
                headers[HttpHeader.CONTENT_TYPE] = request.content_type
            elif header_content_type is None:
                raise InputError(f'No content type for {request}')
        else:
            raise InputError(f'Unsupported HTTP method {request.method}')

        response = self.request(request.method, str(request.url), headers=headers, data=data)
        return DocumentResponse.from_response(response)


def parse_url(value: str, base: str = None) -> URLObject:
    """Parse `value` as an absolute HTTP(S) URL, resolving it against `base`
    first if given. Raises `ValueError` if the result is not an absolute HTTP(S)
    URL."""
    url = URLObject(value if base is None else urljoin(str(base), value))
    if url.scheme not in ('http', 'https') or not url.hostname:
        raise ValueError(f'<{value}> is not an absolute HTTP URL')
    return url
