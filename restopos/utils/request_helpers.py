"""Request parsing helpers shared by the JSON blueprints."""
from flask import request

from restopos.exceptions import InvalidRequestError


def json_body():
    """
    Return the request body as a dict.

    A missing or unparsable body reads as empty so the services report the
    missing fields; any other JSON value (list, string, number) is rejected.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequestError('Request body must be a JSON object')
    return data
