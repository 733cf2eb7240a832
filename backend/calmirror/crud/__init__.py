from .crud_user import user
from . import crud_event
from . import crud_subscription
from . import crud_event_follow
