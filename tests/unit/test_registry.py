from __future__ import annotations

import pytest

from ojcore.engine.errors import InvalidArgumentError, NotFoundError
from ojcore.engine.ids import IdKind

FROM = "2022-08-27T02:05:29.000Z"
TO = "2022-08-27T02:05:30.000Z"


def test_root_user_is_bootstrapped_once(service) -> None:
    assert [user.to_dict() for user in service.registry.list_users()] == [{"id": 0, "name": "root"}]
    assert service.registry.bootstrap_root() is None


def test_bootstrap_can_be_disabled(service_factory) -> None:
    service = service_factory(users={"bootstrap_root": False})

    assert service.registry.list_users() == []
    assert service.registry.create_user("first").id == 0


def test_rename_to_same_name_is_allowed(service, users) -> None:
    assert service.registry.rename_user(users[0], "alice").name == "alice"
    with pytest.raises(InvalidArgumentError):
        service.registry.rename_user(users[0], "bob")


@pytest.mark.parametrize("kwargs, error", [
    ({"from_time": "2022-08-27 02:05:29"}, InvalidArgumentError),
    ({"from_time": TO, "to_time": FROM}, InvalidArgumentError),
    ({"user_ids": [1, 1]}, InvalidArgumentError),
    ({"submission_limit": -1}, InvalidArgumentError),
    ({"problem_ids": [0, 9]}, NotFoundError),
    ({"user_ids": [1, 9]}, NotFoundError),
    ({"contest_id": 0}, InvalidArgumentError),
    ({"contest_id": 4}, NotFoundError),
])
def test_contest_validation(service, users, kwargs, error) -> None:
    arguments = dict(name="weekly", from_time=FROM, to_time=TO, problem_ids=[0, 1], user_ids=[1, 2])
    arguments.update(kwargs)

    with pytest.raises(error):
        service.registry.save_contest(**arguments)

    assert service.registry.list_contests() == []


def test_single_instant_contest_is_valid(service, users) -> None:
    contest = service.registry.save_contest("flash", FROM, FROM, [0], [users[0]])

    assert contest.is_open_at(FROM)
    assert service.registry.get_contest(contest.id).to_dict() == contest.to_dict()


def test_restart_continues_numbering_and_flush_starts_over(service_factory, tmp_path) -> None:
    database = {"path": str(tmp_path / "ojcore.duckdb")}
    first = service_factory(database=database)
    first.registry.create_user("alice")
    first.registry.save_contest("weekly", FROM, TO, [0], [1])
    first.close()

    reopened = service_factory(database=database)
    assert [user.name for user in reopened.registry.list_users()] == ["root", "alice"]
    assert reopened.registry.create_user("bob").id == 2
    assert reopened.ids.peek(IdKind.CONTEST) == 2
    reopened.close()

    flushed = service_factory(database=database, flush=True)
    assert [user.name for user in flushed.registry.list_users()] == ["root"]
