import pytest
from ape.exceptions import ChainError

from deployment.snapshot import create_snapshot, isolated_chain, revert_to_snapshot


def test_revert_discards_changes(dimo_token, deployer, user1):
    snapshot_id = create_snapshot()

    dimo_token.transfer(user1, 100, sender=deployer)
    assert dimo_token.balanceOf(user1) == 100

    revert_to_snapshot(snapshot_id)
    assert dimo_token.balanceOf(user1) == 0


def test_snapshot_is_consumed_by_revert(dimo_token):
    snapshot_id = create_snapshot()
    revert_to_snapshot(snapshot_id)

    with pytest.raises(ChainError):
        revert_to_snapshot(snapshot_id)


def test_revert_discards_later_snapshots(dimo_token, deployer, user1):
    first = create_snapshot()
    dimo_token.transfer(user1, 1, sender=deployer)
    second = create_snapshot()
    dimo_token.transfer(user1, 1, sender=deployer)

    revert_to_snapshot(first)
    assert dimo_token.balanceOf(user1) == 0
    with pytest.raises(ChainError):
        revert_to_snapshot(second)


def test_isolated_chain(stake, dimo_token, deployer):
    with isolated_chain():
        stake.setNewMinStakeAmount(1, sender=deployer)
        dimo_token.pause(sender=deployer)
        assert stake.minStakeAmount() == 1
        assert dimo_token.paused()

    assert stake.minStakeAmount() != 1
    assert not dimo_token.paused()


def test_isolated_chain_reverts_on_error(stake, deployer):
    with pytest.raises(ZeroDivisionError):
        with isolated_chain():
            stake.setNewMinStakeAmount(1, sender=deployer)
            1 / 0

    assert stake.minStakeAmount() != 1
