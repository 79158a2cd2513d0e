from branches import LAST_BRANCH_KEY, Branch, BranchSelector, BranchState
from conftest import BRANCH_A, BRANCH_B

BRANCHES = [Branch(BRANCH_A, "Cabang A"), Branch(BRANCH_B, "Cabang B"), Branch("cab-c", "Tutup", is_active=False)]


def fetch():
    return list(BRANCHES)


def test_starts_without_branch(db):
    selector = BranchSelector(db, role="OWNER")

    assert selector.state == BranchState.NO_BRANCH_SELECTED
    assert selector.branch_id is None


def test_prefers_persisted_branch_when_still_active(db):
    db.set_setting(LAST_BRANCH_KEY, BRANCH_B)
    selector = BranchSelector(db, role="OWNER", assigned_branch_id=BRANCH_A)

    assert selector.initialize(fetch) == BRANCH_B
    assert selector.state == BranchState.BRANCH_SELECTED


def test_inactive_persisted_branch_falls_back_to_assigned(db):
    db.set_setting(LAST_BRANCH_KEY, "cab-c")
    selector = BranchSelector(db, role="MANAGER", assigned_branch_id=BRANCH_B)

    assert selector.initialize(fetch) == BRANCH_B
    assert [b.id for b in selector.branches] == [BRANCH_A, BRANCH_B]


def test_falls_back_to_first_active_branch(db):
    selector = BranchSelector(db, role="OWNER")

    assert selector.initialize(fetch) == BRANCH_A
    assert db.get_setting(LAST_BRANCH_KEY) == BRANCH_A


def test_no_active_branches_leaves_nothing_selected(db):
    selector = BranchSelector(db, role="OWNER")

    assert selector.initialize(lambda: []) is None
    assert selector.state == BranchState.NO_BRANCH_SELECTED


def test_cashier_is_pinned_and_never_fetches(db):
    def fail():
        raise AssertionError("cashiers do not list branches")

    db.set_setting(LAST_BRANCH_KEY, BRANCH_B)
    selector = BranchSelector(db, role="KASIR", assigned_branch_id=BRANCH_A)

    assert selector.initialize(fail) == BRANCH_A
    assert selector.select(BRANCH_B) is False
    assert selector.branch_id == BRANCH_A


def test_select_persists_and_notifies(db):
    seen = []
    selector = BranchSelector(db, role="OWNER")
    selector.on_change(seen.append)
    selector.initialize(fetch)

    assert selector.select(BRANCH_B) is True
    selector.select(BRANCH_B)

    assert seen == [BRANCH_A, BRANCH_B]
    assert db.get_setting(LAST_BRANCH_KEY) == BRANCH_B


def test_select_rejects_unknown_and_inactive_branches(db):
    selector = BranchSelector(db, role="OWNER")
    selector.initialize(fetch)

    assert selector.select("cab-x") is False
    assert selector.select("cab-c") is False
    assert selector.branch_id == BRANCH_A
    assert db.get_setting(LAST_BRANCH_KEY) == BRANCH_A


def test_persisted_numeric_branch_id_is_recognised(db):
    db.set_setting(LAST_BRANCH_KEY, 2)
    selector = BranchSelector(db, role="OWNER", assigned_branch_id=1)

    assert selector.initialize(lambda: [Branch(1, "Satu"), Branch(2, "Dua")]) == 2
