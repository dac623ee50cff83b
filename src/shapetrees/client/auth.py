"""Session authenticators for `RequestsHttpClient`, selected from the `CLIENT`
configuration. Client certificates are not authenticators; they are set on
the session itself (see `RequestsHttpClient`)."""

from typing import Any, Mapping, Optional

from requests.auth import AuthBase, HTTPBasicAuth
from requests_jwtauth import HTTPBearerAuth, JWTSecretAuth

DEFAULT_JWT_SUBJECT = 'shapetrees-client'
JWT_ISSUER = 'shapetrees-client'


def get_authenticator(config: Mapping[str, Any]) -> Optional[AuthBase]:
    """The first of these that is configured wins:

    * `AUTH_TOKEN`: a static bearer token
    * `JWT_SECRET`: bearer tokens signed with the secret, for the subject in
      `JWT_SUBJECT` (default `shapetrees-client`)
    * `USERNAME` and `PASSWORD`: HTTP Basic

    Returns `None` if none of them are present, in which case the only
    credentials sent are the per-operation `Authorization` values of each
    `ShapeTreeContext`.
    """
    if config.get('AUTH_TOKEN'):
        return HTTPBearerAuth(token=config['AUTH_TOKEN'])
    if config.get('JWT_SECRET'):
        return JWTSecretAuth(
            secret=config['JWT_SECRET'],
            claims={
                'sub': config.get('JWT_SUBJECT') or DEFAULT_JWT_SUBJECT,
                'iss': JWT_ISSUER,
            },
        )
    if config.get('USERNAME') and config.get('PASSWORD'):
        return HTTPBasicAuth(username=config['USERNAME'], password=config['PASSWORD'])
    return None
