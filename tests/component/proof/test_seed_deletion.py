"""
Component Tests for seed deletion

Deleting a seed keeps its proofs, detached from the seed with a snapshot
of the seed name.
"""

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.proof_service.protocols import SeedNotFoundError


class TestSeedDeletion:
    """Deleting a seed orphans its proofs"""

    @pytest.mark.asyncio
    async def test_proofs_survive_as_orphans(self, proof_service, dispatcher, mock_repository, factory, owner):
        """Proofs keep a name snapshot and lose the seed link"""
        seed = factory.make_seed(user_id=owner.user_id, recipients=3, name="Spring mailer")
        await mock_repository.save_seed(seed)
        result = await dispatcher.run(seed, owner)

        orphaned = await proof_service.delete_seed(seed.seed_id, owner.user_id)

        assert orphaned == 3
        assert seed.seed_id not in mock_repository.seeds
        for proof in result.succeeded:
            stored = mock_repository.proofs[proof.proof_id]
            assert stored.seed_id is None
            assert stored.seed_name == "Spring mailer"
            assert stored.is_orphaned
            assert stored.resource_id == proof.resource_id

    @pytest.mark.asyncio
    async def test_other_seeds_untouched(self, proof_service, mock_repository, factory, owner):
        """Proofs of other seeds keep their link"""
        doomed = factory.make_seed(user_id=owner.user_id)
        kept = factory.make_seed(user_id=owner.user_id)
        await mock_repository.save_seed(doomed)
        await mock_repository.save_seed(kept)
        kept_proof = factory.make_proof(user_id=owner.user_id, seed_id=kept.seed_id)
        await mock_repository.save_proof(kept_proof)

        await proof_service.delete_seed(doomed.seed_id, owner.user_id)

        assert mock_repository.proofs[kept_proof.proof_id].seed_id == kept.seed_id
        assert not mock_repository.proofs[kept_proof.proof_id].is_orphaned

    @pytest.mark.asyncio
    async def test_orphans_still_listed_for_owner(self, proof_service, mock_repository, factory, owner):
        """Orphaned proofs stay in the owner's list"""
        seed = factory.make_seed(user_id=owner.user_id)
        await mock_repository.save_seed(seed)
        await mock_repository.save_proof(factory.make_proof(user_id=owner.user_id, seed_id=seed.seed_id))

        await proof_service.delete_seed(seed.seed_id, owner.user_id)
        proofs = await proof_service.list_proofs(owner.user_id)

        assert len(proofs) == 1
        assert proofs[0].seed_name == seed.name

    @pytest.mark.asyncio
    async def test_seed_without_proofs(self, proof_service, mock_repository, mock_event_bus, factory, owner):
        """Seed without proofs reports zero orphans"""
        seed = factory.make_seed(user_id=owner.user_id)
        await mock_repository.save_seed(seed)

        assert await proof_service.delete_seed(seed.seed_id, owner.user_id) == 0

        events = mock_event_bus.get_events_by_type("seed.deleted")
        assert events[0]["data"]["seed_id"] == seed.seed_id
        assert events[0]["data"]["orphaned_proofs"] == 0

    @pytest.mark.asyncio
    async def test_other_owner_cannot_delete(self, proof_service, mock_repository, factory, owner):
        """Other owner's seed is not found"""
        seed = factory.make_seed(user_id=owner.user_id)
        await mock_repository.save_seed(seed)

        with pytest.raises(SeedNotFoundError):
            await proof_service.delete_seed(seed.seed_id, "usr_intruder")

        assert seed.seed_id in mock_repository.seeds
        assert mock_repository.orphan_calls == []
