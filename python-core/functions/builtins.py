"""
builtins.py — встроенные функции, регистрируемые RegistryManager.initialize().
"""

from functions.arithmetic import ARITHMETIC_FUNCTIONS
from functions.arrays import ARRAY_FUNCTIONS
from functions.dates import DATE_FUNCTIONS
from functions.debug import DEBUG_FUNCTIONS
from functions.logic import LOGIC_FUNCTIONS
from functions.storage import STORAGE_FUNCTIONS

BUILTIN_FUNCTIONS = {
    **ARITHMETIC_FUNCTIONS,
    **LOGIC_FUNCTIONS,
    **ARRAY_FUNCTIONS,
    **STORAGE_FUNCTIONS,
    **DATE_FUNCTIONS,
    **DEBUG_FUNCTIONS,
}
