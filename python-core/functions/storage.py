"""
storage.py — ReadStorage: чтение из пространства имён хранилища сессии.
"""

from typing import Any, Dict

from dialog.context_manager import DEFAULT_NAMESPACE
from functions.base import FunctionCall


def read_storage(params: Dict[str, Any], call: FunctionCall) -> Any:
    key = params.get("key")
    fallback = params.get("fallbackValue")
    if not key:
        return fallback
    return call.session.read(
        str(key),
        namespace=str(params.get("namespace") or DEFAULT_NAMESPACE),
        default=fallback,
        consume=bool(params.get("clearAfterRead", False)),
    )


STORAGE_FUNCTIONS = {
    "ReadStorage": read_storage,
}
