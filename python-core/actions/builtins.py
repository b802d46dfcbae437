"""
builtins.py — встроенные действия, регистрируемые RegistryManager.initialize().
"""

from actions.input import CancelAwaitingInputAction, RequestContactAction, RequestInputAction
from actions.log import LogAction
from actions.messages import DeleteMessageAction, SendMessageAction, UpdateMessageAction
from actions.navigation import BackAction, NavigateAction
from actions.request_api import RequestApiAction
from actions.storage import ReadStorageAction, StoreAction

BUILTIN_ACTIONS = (
    SendMessageAction,
    UpdateMessageAction,
    DeleteMessageAction,
    NavigateAction,
    BackAction,
    RequestInputAction,
    CancelAwaitingInputAction,
    RequestContactAction,
    StoreAction,
    ReadStorageAction,
    RequestApiAction,
    LogAction,
)
