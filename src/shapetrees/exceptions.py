from http import HTTPStatus


class ShapeTreeError(Exception):
    """Base class for errors raised while resolving or changing shape tree
    managed resources."""

    default_status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, *args, status_code: int = None):
        super().__init__(*args)

        self.status_code: int = status_code if status_code is not None else int(self.default_status)
        """The HTTP status code (e.g., 422) that best describes this error."""

    @property
    def reason(self) -> str:
        """The standard reason phrase for `status_code`, taken from the built-in
        [`HTTPStatus`](https://docs.python.org/3/library/http.html#http.HTTPStatus)
        enumeration."""
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ''


class ProtocolError(ShapeTreeError):
    """Raised when a server response cannot be interpreted, e.g., a `Location`
    header that is not a URL, or a resource that does not advertise its manager."""
    pass


class ConsistencyError(ShapeTreeError):
    """Raised when the server reports a combination of resources that cannot
    exist, such as a manager without the resource it manages."""
    pass


class InputError(ShapeTreeError):
    """Raised when a caller passes missing or invalid arguments."""
    default_status = HTTPStatus.UNPROCESSABLE_ENTITY
