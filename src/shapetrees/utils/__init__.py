import copy
import logging
import logging.config
import os
from typing import Any, Mapping, Optional

DEFAULT_LOGGING_OPTIONS = {
    'version': 1,
    # keep the module-level loggers created at import time
    'disable_existing_loggers': False,
    'formatters': {
        'full': {
            'format': '%(levelname)s|%(asctime)s|%(threadName)s|%(name)s|%(message)s'
        },
        'messageonly': {
            'format': '%(message)s'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'messageonly',
            'stream': 'ext://sys.stderr'
        },
    },
    'loggers': {
        '__main__': {
            'level': 'DEBUG',
            'handlers': ['console'],
            'propagate': False
        },
        'shapetrees': {
            'level': 'DEBUG',
            'handlers': ['console'],
            'propagate': False
        },
        # request tracing from urllib3 is noisy at DEBUG
        'urllib3': {
            'level': 'WARNING',
        },
    },
    'root': {
        'level': 'DEBUG'
    }
}
logger = logging.getLogger(__name__)


def configure_logging(
    options: Optional[Mapping[str, Any]] = None,
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> dict[str, Any]:
    """Apply a `logging.config.dictConfig` configuration, starting from a copy
    of `options` (or `DEFAULT_LOGGING_OPTIONS` if not given).

    If `log_file` is given, a `file` handler writing full-format records at
    DEBUG level is added to the `__main__` and `shapetrees` loggers. `verbose`
    lowers the console handler to DEBUG; `quiet` raises it to WARNING.

    Returns the configuration dictionary that was applied.
    """
    logging_options = copy.deepcopy(dict(options if options is not None else DEFAULT_LOGGING_OPTIONS))

    if log_file is not None:
        logging_options['handlers']['file'] = {
            'class': 'logging.FileHandler',
            'level': 'DEBUG',
            'formatter': 'full',
            'filename': log_file,
        }
        for name in ('__main__', 'shapetrees'):
            handlers = logging_options['loggers'].get(name, {}).setdefault('handlers', [])
            if 'file' not in handlers:
                handlers.append('file')

    # manipulate console verbosity
    if 'console' in logging_options['handlers']:
        if verbose:
            logging_options['handlers']['console']['level'] = 'DEBUG'
        elif quiet:
            logging_options['handlers']['console']['level'] = 'WARNING'

    logging.config.dictConfig(logging_options)
    return logging_options


def envsubst(value: str | list | dict, env: Mapping[str, str] = None) -> str | list | dict:
    """
    Recursively replace `${VAR_NAME}` placeholders in value with the values of the
    corresponding keys of env. If env is not given, it defaults to the environment
    variables in os.environ.

    Any placeholders that do not have a corresponding key in the env dictionary
    are left as is.

    ```pycon
    >>> envsubst('${SERVER}/alice/', {'SERVER': 'https://pod.example'})
    'https://pod.example/alice/'

    >>> envsubst({'AUTH_TOKEN': '${TOKEN}'}, {})
    {'AUTH_TOKEN': '${TOKEN}'}
    ```

    :param value: String, list, or dictionary to search for `${VAR_NAME}` placeholders.
    :param env: Dictionary of values to use as replacements. If not given, defaults
        to `os.environ`.
    :return: A new value of the same type, with the placeholders replaced.
    """
    if env is None:
        env = os.environ
    if isinstance(value, str):
        if '${' in value:
            try:
                return value.replace('${', '{').format(**env)
            except KeyError as e:
                missing_key = str(e.args[0])
                logger.warning(f'Environment variable ${{{missing_key}}} not found')
                # for a missing key, just return the string without substitution
                return envsubst(value, {missing_key: f'${{{missing_key}}}', **env})
        else:
            return value
    elif isinstance(value, list):
        return [envsubst(v, env) for v in value]
    elif isinstance(value, dict):
        return {k: envsubst(v, env) for k, v in value.items()}
    else:
        return value
