"""
Tests for criteria and scope handling.

Tests cover:
- Push order and handle threading between criteria
- Skip / reset semantics
- Resolution by class, registry name and dotted path
- Capability checks
- Sticky scope
"""

import pytest

from repository import (
    CallableCriterion,
    ConfigurationError,
    CriteriaRegistry,
    CriteriaStack,
    Criterion,
    OrderByCriterion,
    RepositoryTypeError,
    WhereCriterion,
    WithRelationsCriterion,
)
from sqlalchemy import inspect as sa_inspect

from tests.support import ActiveUsers, AdultUsers, DuckCriterion, NoApply, names


class Recording(Criterion):
    """Records the order it runs in and the handle it receives."""

    def __init__(self, label, log, field=None, value=None):
        self.label = label
        self.log = log
        self.field = field
        self.value = value

    def apply(self, handle, repository):
        self.log.append((self.label, handle))
        if self.field is None:
            return handle
        return handle.where(self.field, self.value)


@pytest.fixture
def registered():
    CriteriaRegistry.register("active", ActiveUsers)
    yield
    CriteriaRegistry.unregister("active")


# =============================================================
# TEST: Criterion Capability
# =============================================================

class TestCriterionCapability:
    """Criterion matches anything with a callable apply()."""

    def test_subclass_is_criterion(self):
        assert isinstance(ActiveUsers(), Criterion)

    def test_duck_typed_class_is_criterion(self):
        assert isinstance(DuckCriterion(), Criterion)
        assert issubclass(DuckCriterion, Criterion)

    def test_class_without_apply_is_not_criterion(self):
        assert not isinstance(NoApply(), Criterion)
        assert not isinstance("active", Criterion)

    def test_non_callable_apply_is_not_criterion(self):
        class Broken:
            apply = None

        assert not isinstance(Broken(), Criterion)

    def test_stack_keeps_order(self):
        stack = CriteriaStack()
        stack.push("a").push("b")

        assert stack.to_list() == ["a", "b"]
        assert len(stack) == 2
        assert stack[0] == "a"


# =============================================================
# TEST: Criteria Application
# =============================================================

class TestApplyCriteria:
    """Criteria run in push order on every filtered read."""

    def test_criteria_filter_reads(self, repo):
        repo.push_criteria(ActiveUsers()).push_criteria(AdultUsers())
        assert names(repo.all()) == ["ada", "dee"]

    def test_criteria_apply_in_push_order(self, repo):
        log = []
        repo.push_criteria(Recording("first", log, "status", "active"))
        repo.push_criteria(Recording("second", log))
        repo.push_criteria(Recording("third", log))

        repo.all()

        assert [label for label, _ in log] == ["first", "second", "third"]
        assert len(log[1][1].wheres) == 1
        assert log[1][1] is log[2][1]

    def test_each_criterion_receives_previous_output(self, repo):
        log = []
        repo.push_criteria(Recording("a", log, "status", "active"))
        repo.push_criteria(Recording("b", log, "age", 70))
        repo.push_criteria(Recording("c", log))

        assert names(repo.all()) == ["dee"]
        assert [len(handle.wheres) for _, handle in log] == [0, 1, 2]

    def test_criteria_persist_across_calls(self, repo):
        repo.push_criteria(ActiveUsers())

        assert repo.count() == 3
        assert names(repo.all()) == ["ada", "bob", "dee"]
        assert len(repo.find_where({"age": ("age", ">", 30)})) == 2

    def test_criteria_combine_with_builders(self, repo):
        repo.push_criteria(ActiveUsers())
        assert names(repo.where("age", 18, "<").all()) == ["bob"]

    def test_skip_criteria(self, repo):
        repo.push_criteria(ActiveUsers())
        repo.skip_criteria(True)

        assert names(repo.all()) == ["ada", "bob", "cy", "dee"]

        repo.skip_criteria(False)
        assert names(repo.all()) == ["ada", "bob", "dee"]

    def test_skip_criteria_does_not_call_criteria(self, repo):
        log = []
        repo.push_criteria(Recording("x", log)).skip_criteria()
        repo.all()

        assert log == []

    def test_reset_criteria(self, repo):
        repo.push_criteria(ActiveUsers()).push_criteria(AdultUsers())
        repo.reset_criteria()

        assert list(repo.get_criteria()) == []
        assert names(repo.all()) == ["ada", "bob", "cy", "dee"]

    def test_non_criterion_in_stack_is_skipped(self, repo):
        repo.get_criteria().push(object())
        repo.push_criteria(ActiveUsers())

        assert repo.count() == 3

    def test_stock_criteria(self, repo):
        repo.push_criteria(WhereCriterion("age", 20, ">"))
        repo.push_criteria(OrderByCriterion("age", "desc"))
        repo.push_criteria(WithRelationsCriterion("posts"))

        result = repo.all()

        assert [user.name for user in result] == ["dee", "ada", "cy"]
        assert "posts" not in sa_inspect(result[0]).unloaded

    def test_callable_criterion(self, repo):
        seen = []

        def only_cy(handle, repository):
            seen.append(repository)
            return handle.where("name", "cy")

        repo.push_criteria(CallableCriterion(only_cy))

        assert names(repo.all()) == ["cy"]
        assert seen == [repo]


# =============================================================
# TEST: Pushing By Identifier
# =============================================================

class TestPushCriteria:
    """push_criteria resolves identifiers and checks capability."""

    def test_push_class(self, repo):
        repo.push_criteria(ActiveUsers)

        assert isinstance(repo.get_criteria()[0], ActiveUsers)
        assert repo.count() == 3

    def test_push_registered_name(self, repo, registered):
        repo.push_criteria("active")
        assert repo.count() == 3

    def test_push_dotted_path(self, repo):
        repo.push_criteria("tests.support:AdultUsers")
        repo.push_criteria("tests.support.ActiveUsers")

        assert names(repo.all()) == ["ada", "dee"]

    def test_push_duck_typed_instance(self, repo):
        repo.push_criteria(DuckCriterion())
        assert [user.name for user in repo.all()] == ["ada", "bob", "cy", "dee"]

    def test_push_object_without_apply_raises_type_error(self, repo):
        with pytest.raises(RepositoryTypeError) as exc_info:
            repo.push_criteria(NoApply())

        assert isinstance(exc_info.value, TypeError)
        assert len(repo.get_criteria()) == 0

    def test_push_class_without_apply_raises_type_error(self, repo):
        with pytest.raises(TypeError):
            repo.push_criteria(NoApply)

    def test_push_abstract_subclass_raises_type_error(self, repo):
        class Unfinished(Criterion):
            pass

        with pytest.raises(RepositoryTypeError):
            repo.push_criteria(Unfinished)

        assert len(repo.get_criteria()) == 0

    def test_push_unresolvable_name_raises_configuration_error(self, repo):
        with pytest.raises(ConfigurationError):
            repo.push_criteria("no_such_module_anywhere:Criterion")

    def test_push_class_needing_arguments_raises_configuration_error(self, repo):
        with pytest.raises(ConfigurationError):
            repo.push_criteria(WhereCriterion)


# =============================================================
# TEST: Scope
# =============================================================

class TestScope:
    """Staged scope applies after criteria and stays staged."""

    def test_scope_filters_reads(self, repo):
        repo.scope_query(lambda handle: handle.where("status", "inactive"))
        assert names(repo.all()) == ["cy"]

    def test_scope_is_sticky(self, repo):
        calls = []

        def scope(handle):
            calls.append(handle)
            return handle.where("age", 30, ">")

        repo.scope_query(scope)

        assert names(repo.all()) == ["ada", "dee"]
        assert repo.count() == 2
        assert len(calls) == 2

        repo.reset_scope()
        assert repo.count() == 4
        assert len(calls) == 2

    def test_scope_runs_after_criteria(self, repo):
        seen = []

        def scope(handle):
            seen.append(len(handle.wheres))
            return handle

        repo.push_criteria(ActiveUsers()).push_criteria(AdultUsers())
        repo.scope_query(scope)
        repo.all()

        assert seen == [2]

    def test_scope_applies_when_criteria_skipped(self, repo):
        repo.push_criteria(ActiveUsers()).skip_criteria()
        repo.scope_query(lambda handle: handle.where("status", "inactive"))

        assert names(repo.all()) == ["cy"]

    def test_scope_must_be_callable(self, repo):
        with pytest.raises(RepositoryTypeError):
            repo.scope_query("status = 'active'")

    def test_conditions_apply_after_scope(self, repo):
        repo.scope_query(lambda handle: handle.where("status", "active"))
        assert names(repo.find_where({"age": ("age", "<", 40)})) == ["ada", "bob"]
