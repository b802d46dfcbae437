"""
Юнит-тесты для ScopeManager (interpolation/scope_manager.py)
"""

import sys
import os
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from interpolation.scope_manager import MISSING, ScopeManager, descend


def test_inner_frame_shadows_outer():
    scope = ScopeManager()
    scope.create_scope({"name": "outer"})
    scope.create_scope({"name": "inner"})
    assert scope.find_variable("name") == "inner"
    scope.clear_scope()
    assert scope.find_variable("name") == "outer"


def test_cleared_frame_value_is_gone():
    scope = ScopeManager()
    scope.create_scope({"x": 1})
    scope.clear_scope()
    assert scope.find_variable("x") is MISSING
    assert scope.depth == 0


def test_set_variable_creates_frame_implicitly():
    scope = ScopeManager()
    scope.set_variable("answer", 42)
    assert scope.depth == 1
    assert scope.get_variable("answer") == 42


def test_clear_scope_on_empty_stack_is_noop():
    scope = ScopeManager()
    scope.clear_scope()
    assert scope.depth == 0


def test_dotted_path_descends_into_found_root():
    scope = ScopeManager()
    scope.create_scope({"response": {"body": {"items": [{"id": 7}]}}})
    scope.create_scope({"other": True})
    assert scope.find_variable("response.body.items.0.id") == 7
    assert scope.find_variable("response.body.missing") is MISSING
    assert scope.has_variable("response.body")


def test_none_value_is_found():
    scope = ScopeManager()
    scope.create_scope({"empty": None})
    assert scope.find_variable("empty") is None
    assert scope.has_variable("empty")


def test_get_variable_only_reads_current_frame():
    scope = ScopeManager()
    scope.create_scope({"a": 1})
    scope.create_scope()
    assert scope.get_variable("a") is MISSING
    assert scope.find_variable("a") == 1


def test_scope_context_pops_on_error():
    scope = ScopeManager()
    with pytest.raises(RuntimeError):
        with scope.scope({"temp": 1}):
            assert scope.depth == 1
            raise RuntimeError("boom")
    assert scope.depth == 0
    assert scope.find_variable("temp") is MISSING


def test_merged_prefers_inner_frames():
    scope = ScopeManager()
    scope.create_scope({"a": 1, "b": 1})
    scope.create_scope({"b": 2})
    assert scope.merged() == {"a": 1, "b": 2}


def test_descend_lists_and_negative_index():
    assert descend([1, 2, 3], "-1") == 3
    assert descend([1, 2, 3], "5") is MISSING
    assert descend("text", "length") is MISSING
    assert descend({"a": 1}, "") == {"a": 1}
