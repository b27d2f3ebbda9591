from __future__ import annotations

from fk.core.result import Err, Ok
from fk.git.branch import BranchHandle, advance, take_handle, verify_handle
from fk.test._fakes import FakeVcs


def test_take_handle_reads_head() -> None:
    vcs = FakeVcs({"a.txt": "a"})
    handle = take_handle(vcs, "main")
    assert handle == Ok(BranchHandle(branch="main", head=vcs.branches["main"]))


def test_take_handle_unknown_branch() -> None:
    assert isinstance(take_handle(FakeVcs({}), "release"), Err)


def test_verify_handle_detects_move() -> None:
    vcs = FakeVcs({"a.txt": "a"})
    handle = take_handle(vcs, "main").unwrap()
    vcs.write_file("a.txt", "b")
    vcs.commit("someone else")

    result = verify_handle(vcs, handle)

    assert isinstance(result, Err)
    assert "moved" in result.error.message


def test_advance_is_compare_and_swap() -> None:
    vcs = FakeVcs({"a.txt": "a"})
    prior = take_handle(vcs, "main").unwrap()
    vcs.write_file("a.txt", "b")
    new_head = vcs.commit("change").unwrap()

    # The handle taken before the commit is stale now.
    stale = advance(vcs, prior, prior.head)
    assert isinstance(stale, Err)

    current = BranchHandle(branch="main", head=new_head)
    moved = advance(vcs, current, prior.head)
    assert moved == Ok(BranchHandle(branch="main", head=prior.head))
    assert vcs.branches["main"] == prior.head
    assert vcs.read_file("a.txt") == "a"


def test_short_head() -> None:
    assert BranchHandle(branch="main", head="0123456789abcdef").short_head == "01234567"
