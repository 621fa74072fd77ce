import asyncio
import random
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from giftparty.core.exceptions import PartyNotFound, SignupsChanged, StorageError
from giftparty.models.signup import Signup
from giftparty.services.matching_service import MatchingService
from giftparty.services.party_repository import PartyRepository


def _assert_full_derangement(matches, user_ids):
    givers = [m.giver_id for m in matches]
    receivers = [m.receiver_id for m in matches]
    assert set(givers) == set(receivers) == set(user_ids)
    assert len(givers) == len(set(givers)) == len(user_ids)
    assert all(m.giver_id != m.receiver_id for m in matches)


@pytest.mark.parametrize("n", [2, 3, 4, 7, 20])
def test_pair_signups_is_a_derangement(mock_session, n):
    service = MatchingService(mock_session, rng=random.Random(n))
    signups = [Signup(user_id=uid, display_payload=b"d%d" % uid, hint_payload=b"h%d" % uid) for uid in range(n)]

    for _ in range(25):
        matches = service.pair_signups(signups)
        _assert_full_derangement(matches, range(n))


def test_pair_signups_carries_receiver_payloads(mock_session):
    service = MatchingService(mock_session)
    signups = [Signup(user_id=uid, display_payload=b"d%d" % uid, hint_payload=b"h%d" % uid) for uid in (10, 20, 30)]

    for match in service.pair_signups(signups):
        assert match.receiver_display == b"d%d" % match.receiver_id
        assert match.receiver_hint == b"h%d" % match.receiver_id


def test_pair_signups_leaves_input_untouched(mock_session):
    signups = [Signup(user_id=uid, display_payload=b"", hint_payload=b"") for uid in (1, 2, 3)]
    MatchingService(mock_session).pair_signups(signups)
    assert [s.user_id for s in signups] == [1, 2, 3]


@pytest.mark.asyncio
async def test_three_signups_resolve_to_three_matches(db_session, make_party):
    party = await make_party(user_ids=[101, 102, 103])

    outcome = await MatchingService(db_session).resolve_party(party.id)

    assert outcome.matches_recorded == 3
    assert not outcome.degenerate
    repo = PartyRepository(db_session)
    assert (await repo.get_party(party.id)).matches_made is True
    _assert_full_derangement(await repo.list_matches(party.id), [101, 102, 103])


@pytest.mark.asyncio
async def test_single_signup_resolves_without_matches(db_session, make_party):
    party = await make_party(user_ids=[1])

    outcome = await MatchingService(db_session).resolve_party(party.id)

    assert outcome.degenerate
    assert outcome.matches_recorded == 0
    repo = PartyRepository(db_session)
    assert (await repo.get_party(party.id)).matches_made is True
    assert await repo.list_matches(party.id) == []


@pytest.mark.asyncio
async def test_empty_party_resolves_without_matches(db_session, make_party):
    party = await make_party()

    outcome = await MatchingService(db_session).resolve_party(party.id)

    assert outcome.degenerate
    assert (await PartyRepository(db_session).get_party(party.id)).matches_made is True


@pytest.mark.asyncio
async def test_second_resolution_is_a_no_op(db_session, make_party):
    party = await make_party(user_ids=[1, 2, 3, 4])
    service = MatchingService(db_session)
    await service.resolve_party(party.id)
    repo = PartyRepository(db_session)
    before = {(m.giver_id, m.receiver_id) for m in await repo.list_matches(party.id)}

    outcome = await service.resolve_party(party.id)

    assert outcome.already_resolved
    after = {(m.giver_id, m.receiver_id) for m in await repo.list_matches(party.id)}
    assert after == before


@pytest.mark.asyncio
async def test_concurrent_resolutions_commit_once(session_factory, make_party):
    party = await make_party(user_ids=[1, 2, 3, 4, 5])

    async def resolve():
        async with session_factory() as session:
            return await MatchingService(session).resolve_party(party.id)

    outcomes = await asyncio.gather(resolve(), resolve())

    assert sorted(o.already_resolved for o in outcomes) == [False, True]
    async with session_factory() as session:
        _assert_full_derangement(await PartyRepository(session).list_matches(party.id), [1, 2, 3, 4, 5])


@pytest.mark.asyncio
async def test_storage_failure_leaves_party_open(db_session, make_party):
    party = await make_party(user_ids=[1, 2, 3])

    with patch.object(PartyRepository, "record_matches", AsyncMock(side_effect=StorageError("boom"))):
        with pytest.raises(StorageError):
            await MatchingService(db_session).resolve_party(party.id)

    repo = PartyRepository(db_session)
    assert (await repo.get_party(party.id)).matches_made is False
    assert await repo.list_matches(party.id) == []

    # A later retry still succeeds
    outcome = await MatchingService(db_session).resolve_party(party.id)
    assert outcome.matches_recorded == 3


@pytest.mark.asyncio
async def test_unknown_party_raises_not_found(db_session):
    with pytest.raises(PartyNotFound):
        await MatchingService(db_session).resolve_party(uuid.uuid4())


def _join_during_load(session_factory, new_user_ids):
    """list_signups replacement that lets another session join right after each load."""
    load_signups = PartyRepository.list_signups
    pending = list(new_user_ids)

    async def load_then_join(self, party_id):
        signups = await load_signups(self, party_id)
        if pending:
            uid = pending.pop(0)
            async with session_factory() as other:
                await PartyRepository(other).add_signup(party_id, Signup(
                    user_id=uid,
                    display_payload=f"name-{uid}".encode(),
                    hint_payload=f"hint-{uid}".encode(),
                ))
        return signups

    return load_then_join


@pytest.mark.asyncio
async def test_signup_between_load_and_commit_is_matched(db_session, session_factory, make_party):
    party = await make_party(user_ids=[1, 2, 3])

    with patch.object(PartyRepository, "list_signups", _join_during_load(session_factory, [4])):
        outcome = await MatchingService(db_session).resolve_party(party.id)

    assert outcome.matches_recorded == 4
    repo = PartyRepository(db_session)
    assert (await repo.get_party(party.id)).matches_made is True
    signup_ids = {s.user_id for s in await repo.list_signups(party.id)}
    assert signup_ids == {1, 2, 3, 4}
    _assert_full_derangement(await repo.list_matches(party.id), signup_ids)


@pytest.mark.asyncio
async def test_signup_during_degenerate_resolution_is_matched(db_session, session_factory, make_party):
    party = await make_party(user_ids=[1])

    with patch.object(PartyRepository, "list_signups", _join_during_load(session_factory, [2])):
        outcome = await MatchingService(db_session).resolve_party(party.id)

    assert not outcome.degenerate
    assert outcome.matches_recorded == 2
    _assert_full_derangement(await PartyRepository(db_session).list_matches(party.id), [1, 2])


@pytest.mark.asyncio
async def test_signups_that_keep_changing_leave_party_open(db_session, session_factory, make_party):
    party = await make_party(user_ids=[1, 2])

    with patch.object(PartyRepository, "list_signups", _join_during_load(session_factory, range(100, 110))):
        with pytest.raises(SignupsChanged):
            await MatchingService(db_session).resolve_party(party.id)

    repo = PartyRepository(db_session)
    assert (await repo.get_party(party.id)).matches_made is False
    assert await repo.list_matches(party.id) == []
