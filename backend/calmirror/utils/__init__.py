from .json import dumps, loads_or_none, parse_tags
from .errors import error_response
