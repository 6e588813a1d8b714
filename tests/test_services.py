"""Service layer tests against a temporary SQLite database.

Covers sharing, public links, membership and album lifecycle as a request
would drive them (one commit per operation).
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from photovault.database import get_db
from photovault.exceptions import (
    AlbumNotFoundError,
    ConflictError,
    CoverPhotoNotInAlbumError,
    InsufficientPermissionError,
    InvalidExpiryError,
    InvalidShareTargetError,
    NotOwnerError,
    PhotoNotFoundError,
    PhotoNotOwnedError,
    PublicAlbumNotFoundError,
    TokenCollisionError,
    UserNotFoundError,
)
from photovault.models import AlbumPhoto, AlbumShare, Photo, User
from photovault.models.share import ByEmail, ById, SharePermission
from photovault.schemas.album import AlbumCreate, AlbumUpdate
from photovault.schemas.share import ShareCreate
from photovault.services.access import AccessLevel, Principal, evaluate
from photovault.services.album import AlbumService
from photovault.services.album_store import AlbumStore
from photovault.services.membership import MembershipService
from photovault.services.photo import PhotoService
from photovault.services.public_link import PublicLinkService
from photovault.services.sharing import SharingService
from photovault.services.users import UserService
from photovault.utils.clock import utcnow


async def create_album(db, owner, title="Summer") -> int:
    detail = await AlbumService(db).create_album(owner, AlbumCreate(title=title))
    await db.commit()
    return detail.id


async def share_count(db, album_id) -> int:
    result = await db.execute(
        select(func.count()).select_from(AlbumShare).where(AlbumShare.album_id == album_id)
    )
    return result.scalar()


# =============================================================================
# Album lifecycle
# =============================================================================

class TestAlbumLifecycle:

    async def test_new_album_is_empty_private_and_unshared(self, db, directory):
        alice = directory["alice"]
        detail = await AlbumService(db).create_album(
            alice, AlbumCreate(title="  Summer  ", description="beach")
        )

        assert detail.title == "Summer"
        assert detail.owner_id == alice.user_id
        assert detail.photo_ids == []
        assert detail.shared_with == []
        assert detail.is_public is False
        assert detail.public_token is None
        assert detail.access_level == "owner"

    async def test_stranger_cannot_see_private_album(self, db, directory):
        album_id = await create_album(db, directory["alice"])
        with pytest.raises(AlbumNotFoundError):
            await AlbumService(db).get_album(album_id, directory["carol"])

    async def test_missing_album_is_not_found(self, db, directory):
        with pytest.raises(AlbumNotFoundError):
            await AlbumService(db).get_album(12345, directory["alice"])

    async def test_collaborator_view_hides_owner_fields(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(album_id, alice, ShareCreate(username="bob"))
        await PublicLinkService(db).generate_public_token(album_id, alice)
        await db.commit()

        detail = await AlbumService(db).get_album(album_id, bob)
        assert detail.access_level == "view"
        assert detail.shared_with is None
        assert detail.public_token is None

    async def test_update_is_owner_only_and_empty_description_clears(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()

        with pytest.raises(NotOwnerError):
            await AlbumService(db).update_album(album_id, bob, AlbumUpdate(title="Mine"))

        await AlbumService(db).update_album(
            album_id, alice, AlbumUpdate(title="Renamed", description="x")
        )
        detail = await AlbumService(db).update_album(album_id, alice, AlbumUpdate(description=""))
        assert detail.title == "Renamed"
        assert detail.description is None

    async def test_delete_keeps_photos(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [directory["photos"]["alice_1"]])
        await SharingService(db).share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()

        await AlbumService(db).delete_album(album_id, alice)
        await db.commit()

        with pytest.raises(AlbumNotFoundError):
            await AlbumService(db).get_album(album_id, alice)
        assert await share_count(db, album_id) == 0
        remaining = await db.execute(select(func.count()).select_from(AlbumPhoto))
        assert remaining.scalar() == 0
        photo = await db.execute(
            select(func.count()).select_from(Photo).where(Photo.id == directory["photos"]["alice_1"])
        )
        assert photo.scalar() == 1

    async def test_delete_by_collaborator_is_rejected(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()
        with pytest.raises(NotOwnerError):
            await AlbumService(db).delete_album(album_id, directory["bob"])

    async def test_list_albums_splits_owned_and_shared(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        mine = await create_album(db, bob, "Bob's")
        shared = await create_album(db, alice, "Alice's")
        by_email = await create_album(db, alice, "By email")
        await create_album(db, alice, "Private")
        sharing = SharingService(db)
        await sharing.share_album(shared, alice, ShareCreate(username="bob", permission="edit"))
        # bob's stored email is mixed case; the lookup is case-insensitive
        await sharing.share_album(by_email, alice, ShareCreate(email="bob@example.com"))
        await db.commit()

        listing = await AlbumService(db).list_albums(bob)
        assert [a.id for a in listing.owned] == [mine]
        assert {a.id for a in listing.shared} == {shared, by_email}
        levels = {a.id: a.access_level for a in listing.shared}
        assert levels[shared] == "edit"
        assert levels[by_email] == "view"


# =============================================================================
# Sharing
# =============================================================================

class TestSharing:

    async def test_share_is_owner_only(self, db, directory):
        album_id = await create_album(db, directory["alice"])
        with pytest.raises(NotOwnerError):
            await SharingService(db).share_album(
                album_id, directory["bob"], ShareCreate(username="carol")
            )

    async def test_repeated_share_is_idempotent(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        sharing = SharingService(db)

        first = await sharing.share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()
        second = await sharing.share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()

        assert await share_count(db, album_id) == 1
        # 기존 entry는 그대로 반환 (permission 변경 없음)
        assert second.permission == SharePermission.VIEW
        assert second.shared_at == first.shared_at

    async def test_share_by_email_and_username_reach_same_entry(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        sharing = SharingService(db)

        await sharing.share_album(album_id, alice, ShareCreate(email="BOB@example.com"))
        entry = await sharing.share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()

        assert await share_count(db, album_id) == 1
        assert entry.user_id == bob.user_id
        assert entry.email is None

    async def test_share_with_unregistered_email(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        entry = await SharingService(db).share_album(
            album_id, alice, ShareCreate(email="New.Person@Example.com")
        )
        await db.commit()
        assert entry.user_id is None
        assert entry.email == "new.person@example.com"

    async def test_unknown_username_is_rejected(self, db, directory):
        album_id = await create_album(db, directory["alice"])
        with pytest.raises(UserNotFoundError):
            await SharingService(db).share_album(
                album_id, directory["alice"], ShareCreate(username="nobody")
            )

    @pytest.mark.parametrize(
        "target", [{"username": "alice"}, {"email": "ALICE@example.com"}]
    )
    async def test_owner_cannot_be_share_target(self, db, directory, target):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        with pytest.raises(InvalidShareTargetError):
            await SharingService(db).share_album(album_id, alice, ShareCreate(**target))
        assert await share_count(db, album_id) == 0

    async def test_past_share_expiry_is_rejected(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        with pytest.raises(InvalidExpiryError):
            await SharingService(db).share_album(
                album_id,
                alice,
                ShareCreate(username="bob", expires_at=utcnow() - timedelta(minutes=1)),
            )

    async def test_expired_share_is_inert_and_can_be_renewed(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        store = AlbumStore(db)
        await store.insert_share_if_absent(
            AlbumShare.for_principal(
                ById(bob.user_id),
                SharePermission.EDIT,
                expires_at=utcnow() - timedelta(hours=1),
                album_id=album_id,
            )
        )
        await db.commit()

        album = await store.get(album_id)
        assert evaluate(album, bob) == AccessLevel.NONE
        listing = await AlbumService(db).list_albums(bob)
        assert listing.shared == []

        entry = await SharingService(db).share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()
        assert entry.permission == SharePermission.VIEW
        assert entry.expires_at is None
        assert await share_count(db, album_id) == 1
        album = await store.get(album_id)
        assert evaluate(album, bob) == AccessLevel.VIEW

    async def test_unshare_absent_entry_is_noop(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        removed = await SharingService(db).unshare_album(album_id, alice, ById(directory["bob"].user_id))
        assert removed is False

    async def test_unshare_by_email_removes_user_keyed_entry(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        sharing = SharingService(db)
        await sharing.share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()

        assert await sharing.unshare_album(album_id, alice, ByEmail("bob@example.com")) is True
        await db.commit()
        with pytest.raises(AlbumNotFoundError):
            await AlbumService(db).get_album(album_id, bob)

    async def test_unshare_is_owner_only(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()
        with pytest.raises(NotOwnerError):
            await SharingService(db).unshare_album(album_id, bob, ById(bob.user_id))

    async def test_list_shares_in_grant_order(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        sharing = SharingService(db)
        await sharing.share_album(album_id, alice, ShareCreate(username="carol"))
        await sharing.share_album(album_id, alice, ShareCreate(email="zed@example.com"))
        await sharing.share_album(album_id, alice, ShareCreate(username="bob", permission="edit"))
        await db.commit()

        entries = await sharing.list_shares(album_id, alice)
        assert [e.user_id or e.email for e in entries] == [
            directory["carol"].user_id,
            "zed@example.com",
            directory["bob"].user_id,
        ]

    async def test_conditional_insert_reports_existing_entry(self, db, directory):
        """Two writers racing on the same principal: one row, both succeed."""
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        store = AlbumStore(db)

        first = await store.insert_share_if_absent(
            AlbumShare.for_principal(ById(bob.user_id), SharePermission.VIEW, album_id=album_id)
        )
        second = await store.insert_share_if_absent(
            AlbumShare.for_principal(ById(bob.user_id), SharePermission.EDIT, album_id=album_id)
        )
        await db.commit()

        assert (first, second) == (True, False)
        assert await share_count(db, album_id) == 1

    async def test_share_touches_updated_at_only_when_added(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        sharing = SharingService(db)
        store = AlbumStore(db)

        await sharing.share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()
        after_first = (await store.get(album_id)).updated_at

        await sharing.share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()
        assert (await store.get(album_id)).updated_at == after_first


# =============================================================================
# Membership
# =============================================================================

class TestMembership:

    async def test_owner_adds_photos_in_order(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        result = await MembershipService(db).add_photos(
            album_id, alice, [photos["alice_2"], photos["alice_1"], photos["alice_2"]]
        )
        await db.commit()

        assert result.changed == 2
        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.photo_ids == [photos["alice_2"], photos["alice_1"]]
        assert detail.photo_count == 2

    async def test_re_adding_is_skipped(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        membership = MembershipService(db)
        await membership.add_photos(album_id, alice, [photos["alice_1"]])
        await db.commit()

        result = await membership.add_photos(album_id, alice, [photos["alice_1"], photos["alice_3"]])
        await db.commit()
        assert (result.total, result.changed, result.skipped) == (2, 1, 1)

    async def test_edit_collaborator_can_add_owner_photos(self, db, directory):
        alice, bob, photos = directory["alice"], directory["bob"], directory["photos"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()

        assert await MembershipService(db).add_photo(album_id, bob, photos["alice_1"]) is True

    async def test_edit_collaborator_cannot_add_own_photos(self, db, directory):
        alice, bob, photos = directory["alice"], directory["bob"], directory["photos"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()

        with pytest.raises(PhotoNotOwnedError):
            await MembershipService(db).add_photo(album_id, bob, photos["bob_1"])

    async def test_batch_with_foreign_photo_writes_nothing(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        with pytest.raises(PhotoNotOwnedError):
            await MembershipService(db).add_photos(
                album_id, alice, [photos["alice_1"], photos["bob_1"]]
            )
        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.photo_ids == []

    async def test_missing_photo_is_not_found(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        with pytest.raises(PhotoNotFoundError):
            await MembershipService(db).add_photos(album_id, alice, [987654])

    async def test_view_collaborator_cannot_change_membership(self, db, directory):
        alice, bob, photos = directory["alice"], directory["bob"], directory["photos"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(album_id, alice, ShareCreate(username="bob"))
        await db.commit()

        membership = MembershipService(db)
        with pytest.raises(InsufficientPermissionError):
            await membership.add_photo(album_id, bob, photos["alice_1"])
        with pytest.raises(InsufficientPermissionError):
            await membership.remove_photo(album_id, bob, photos["alice_1"])

    async def test_stranger_cannot_change_membership(self, db, directory):
        album_id = await create_album(db, directory["alice"])
        with pytest.raises(InsufficientPermissionError):
            await MembershipService(db).add_photo(
                album_id, directory["carol"], directory["photos"]["alice_1"]
            )

    async def test_remove_ignores_non_members(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        membership = MembershipService(db)
        await membership.add_photos(album_id, alice, [photos["alice_1"], photos["alice_2"]])
        await db.commit()

        result = await membership.remove_photos(album_id, alice, [photos["alice_1"], 424242])
        await db.commit()
        assert result.changed == 1

        assert await membership.remove_photo(album_id, alice, photos["alice_1"]) is False
        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.photo_ids == [photos["alice_2"]]

    async def test_removed_photo_can_be_added_again(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        membership = MembershipService(db)
        await membership.add_photos(album_id, alice, [photos["alice_1"], photos["alice_2"]])
        await membership.remove_photo(album_id, alice, photos["alice_1"])
        await membership.add_photo(album_id, alice, photos["alice_1"])
        await db.commit()

        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.photo_ids == [photos["alice_2"], photos["alice_1"]]


# =============================================================================
# Public links
# =============================================================================

class TestPublicLink:

    async def test_generate_and_resolve(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [photos["alice_1"]])
        link = await PublicLinkService(db).generate_public_token(album_id, alice)
        await db.commit()

        assert len(link.public_token) == 64
        assert link.public_url == f"https://photos.example.com/album/public/{link.public_token}"
        assert link.expires_at is None

        public = await PublicLinkService(db).resolve_public_album(link.public_token)
        assert public.id == album_id
        assert public.photo_ids == [photos["alice_1"]]
        assert public.photo_count == 1
        assert not hasattr(public, "owner_id")

    async def test_generate_is_owner_only(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()
        with pytest.raises(NotOwnerError):
            await PublicLinkService(db).generate_public_token(album_id, bob)
        with pytest.raises(NotOwnerError):
            await PublicLinkService(db).revoke_public_access(album_id, bob)

    async def test_rotation_invalidates_previous_token(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        service = PublicLinkService(db)
        first = await service.generate_public_token(album_id, alice)
        await db.commit()
        second = await service.generate_public_token(album_id, alice)
        await db.commit()

        assert first.public_token != second.public_token
        with pytest.raises(PublicAlbumNotFoundError):
            await service.resolve_public_album(first.public_token)
        assert (await service.resolve_public_album(second.public_token)).id == album_id

    async def test_revoke_is_absolute_and_idempotent(self, db, directory):
        alice, bob = directory["alice"], directory["bob"]
        album_id = await create_album(db, alice)
        await SharingService(db).share_album(album_id, alice, ShareCreate(username="bob"))
        service = PublicLinkService(db)
        link = await service.generate_public_token(album_id, alice)
        await db.commit()

        await service.revoke_public_access(album_id, alice)
        await service.revoke_public_access(album_id, alice)
        await db.commit()

        with pytest.raises(PublicAlbumNotFoundError):
            await service.resolve_public_album(link.public_token)
        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.is_public is False
        assert detail.public_token is None
        assert detail.public_expires_at is None
        # 공유는 유지
        assert (await AlbumService(db).get_album(album_id, bob)).access_level == "view"

    async def test_relative_expiry(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        before = utcnow()
        link = await PublicLinkService(db).generate_public_token(album_id, alice, expires_in_days=7)
        assert before + timedelta(days=7) <= link.expires_at <= utcnow() + timedelta(days=7)

    async def test_already_expired_link_is_rejected(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        with pytest.raises(InvalidExpiryError):
            await PublicLinkService(db).generate_public_token(
                album_id, alice, expires_at=utcnow() - timedelta(seconds=1)
            )
        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.is_public is False

    async def test_expired_link_resolves_not_found(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        store = AlbumStore(db)
        token = "ab" * 32
        await store.set_public_link(album_id, alice.user_id, token, utcnow() - timedelta(minutes=5))
        await db.commit()

        with pytest.raises(PublicAlbumNotFoundError):
            await PublicLinkService(db).resolve_public_album(token)
        assert evaluate(await store.get(album_id), None) == AccessLevel.NONE

    async def test_malformed_token_skips_lookup(self, db, directory, monkeypatch):
        async def fail_lookup(self, token):
            raise AssertionError("lookup must not run for malformed tokens")

        monkeypatch.setattr(AlbumStore, "find_by_public_token", fail_lookup)
        with pytest.raises(PublicAlbumNotFoundError):
            await PublicLinkService(db).resolve_public_album("not-a-token")

    async def test_unknown_and_revoked_tokens_look_identical(self, db, directory):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        service = PublicLinkService(db)
        link = await service.generate_public_token(album_id, alice)
        await service.revoke_public_access(album_id, alice)
        await db.commit()

        with pytest.raises(PublicAlbumNotFoundError) as revoked:
            await service.resolve_public_album(link.public_token)
        with pytest.raises(PublicAlbumNotFoundError) as unknown:
            await service.resolve_public_album("cd" * 32)
        assert revoked.value.detail == unknown.value.detail
        assert revoked.value.status_code == unknown.value.status_code == 404

    async def test_token_collision_is_retried(self, db, directory, monkeypatch):
        alice = directory["alice"]
        first_album = await create_album(db, alice, "First")
        second_album = await create_album(db, alice, "Second")
        taken = "aa" * 32
        fresh = "bb" * 32
        await AlbumStore(db).set_public_link(first_album, alice.user_id, taken, None)
        await db.commit()

        tokens = iter([taken, taken, fresh])
        monkeypatch.setattr(
            "photovault.services.public_link.generate_public_token",
            lambda nbytes=None: next(tokens),
        )
        link = await PublicLinkService(db).generate_public_token(second_album, alice)
        await db.commit()

        assert link.public_token == fresh
        assert (await PublicLinkService(db).resolve_public_album(taken)).id == first_album

    async def test_token_collision_surfaces_after_max_attempts(self, db, directory, monkeypatch):
        alice = directory["alice"]
        first_album = await create_album(db, alice, "First")
        second_album = await create_album(db, alice, "Second")
        taken = "aa" * 32
        await AlbumStore(db).set_public_link(first_album, alice.user_id, taken, None)
        await db.commit()

        monkeypatch.setattr(
            "photovault.services.public_link.generate_public_token",
            lambda nbytes=None: taken,
        )
        with pytest.raises(TokenCollisionError):
            await PublicLinkService(db).generate_public_token(second_album, alice)
        detail = await AlbumService(db).get_album(second_album, alice)
        assert detail.is_public is False


# =============================================================================
# Directories
# =============================================================================

class TestDirectories:

    async def test_photo_owner_lookup(self, db, directory):
        photos = PhotoService(db)
        assert await photos.get_photo_owner(directory["photos"]["bob_1"]) == directory["bob"].user_id
        assert await photos.get_photo_owner(987654) is None

    async def test_user_lookup_by_email_ignores_case(self, db, directory):
        user = await UserService(db).find_by_email("  BOB@example.COM")
        assert user is not None
        assert user.id == directory["bob"].user_id


# =============================================================================
# Cover photo
# =============================================================================

class TestCoverPhoto:

    async def test_owner_sets_member_photo_as_cover(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [photos["alice_1"]])
        await db.commit()

        detail = await AlbumService(db).update_album(
            album_id, alice, AlbumUpdate(cover_photo_id=photos["alice_1"])
        )
        await db.commit()
        assert detail.cover_photo_id == photos["alice_1"]

        # 다른 필드만 바꾸면 cover는 그대로
        detail = await AlbumService(db).update_album(album_id, alice, AlbumUpdate(title="Jeju"))
        assert detail.cover_photo_id == photos["alice_1"]

    async def test_non_member_photo_is_rejected(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [photos["alice_1"]])
        await db.commit()

        with pytest.raises(CoverPhotoNotInAlbumError):
            await AlbumService(db).update_album(
                album_id, alice, AlbumUpdate(cover_photo_id=photos["alice_2"])
            )
        await db.rollback()
        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.cover_photo_id is None

    async def test_explicit_null_clears_cover(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [photos["alice_1"]])
        await AlbumService(db).update_album(
            album_id, alice, AlbumUpdate(cover_photo_id=photos["alice_1"])
        )
        await db.commit()

        detail = await AlbumService(db).update_album(
            album_id, alice, AlbumUpdate(cover_photo_id=None)
        )
        assert detail.cover_photo_id is None

    async def test_removing_cover_photo_clears_cover(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        membership = MembershipService(db)
        await membership.add_photos(album_id, alice, [photos["alice_1"], photos["alice_2"]])
        await AlbumService(db).update_album(
            album_id, alice, AlbumUpdate(cover_photo_id=photos["alice_1"])
        )
        await db.commit()

        await membership.remove_photo(album_id, alice, photos["alice_2"])
        await db.commit()
        assert (await AlbumService(db).get_album(album_id, alice)).cover_photo_id == photos["alice_1"]

        await membership.remove_photo(album_id, alice, photos["alice_1"])
        await db.commit()
        assert (await AlbumService(db).get_album(album_id, alice)).cover_photo_id is None

    async def test_edit_collaborator_cannot_set_cover(self, db, directory):
        alice, bob, photos = directory["alice"], directory["bob"], directory["photos"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [photos["alice_1"]])
        await SharingService(db).share_album(
            album_id, alice, ShareCreate(username="bob", permission="edit")
        )
        await db.commit()

        with pytest.raises(NotOwnerError):
            await AlbumService(db).update_album(
                album_id, bob, AlbumUpdate(cover_photo_id=photos["alice_1"])
            )

    async def test_public_view_shows_cover(self, db, directory):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)
        await MembershipService(db).add_photos(album_id, alice, [photos["alice_3"]])
        await AlbumService(db).update_album(
            album_id, alice, AlbumUpdate(cover_photo_id=photos["alice_3"])
        )
        link = await PublicLinkService(db).generate_public_token(album_id, alice)
        await db.commit()

        public = await PublicLinkService(db).resolve_public_album(link.public_token)
        assert public.cover_photo_id == photos["alice_3"]


# =============================================================================
# Concurrent requests and write conflicts
# =============================================================================

async def in_own_session(session_maker, operation):
    """Run one operation the way a request would: own session, one commit."""
    async with session_maker() as session:
        result = await operation(session)
        await session.commit()
        return result


class TestConcurrency:

    async def test_identical_concurrent_shares_both_succeed(self, db, directory, session_maker):
        alice = directory["alice"]
        album_id = await create_album(db, alice)

        def share(session):
            return SharingService(session).share_album(
                album_id, alice, ShareCreate(username="bob", permission="edit")
            )

        first, second = await asyncio.gather(
            in_own_session(session_maker, share),
            in_own_session(session_maker, share),
        )

        assert first.user_id == second.user_id == directory["bob"].user_id
        assert first.permission == second.permission == "edit"
        assert await share_count(db, album_id) == 1

    async def test_concurrent_add_of_same_photo_stores_one_row(self, db, directory, session_maker):
        alice, photos = directory["alice"], directory["photos"]
        album_id = await create_album(db, alice)

        def add(session):
            return MembershipService(session).add_photos(album_id, alice, [photos["alice_1"]])

        results = await asyncio.gather(
            in_own_session(session_maker, add),
            in_own_session(session_maker, add),
        )

        assert sum(r.changed for r in results) == 1
        assert sum(r.skipped for r in results) == 1
        rows = await db.execute(
            select(func.count()).select_from(AlbumPhoto).where(AlbumPhoto.album_id == album_id)
        )
        assert rows.scalar() == 1

    async def test_concurrent_revocations_both_succeed(self, db, directory, session_maker):
        alice = directory["alice"]
        album_id = await create_album(db, alice)
        await PublicLinkService(db).generate_public_token(album_id, alice)
        await db.commit()

        def revoke(session):
            return PublicLinkService(session).revoke_public_access(album_id, alice)

        await asyncio.gather(
            in_own_session(session_maker, revoke),
            in_own_session(session_maker, revoke),
        )

        detail = await AlbumService(db).get_album(album_id, alice)
        assert detail.is_public is False
        assert detail.public_token is None

    async def test_locked_write_becomes_conflict(self, db, monkeypatch):
        async def locked(*args, **kwargs):
            raise OperationalError("UPDATE albums", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "execute", locked)
        with pytest.raises(ConflictError):
            await AlbumStore(db).clear_public_link(1, 1)

    async def test_request_session_maps_lock_failure_to_conflict(self):
        sessions = get_db()
        await sessions.__anext__()
        with pytest.raises(ConflictError):
            await sessions.athrow(
                OperationalError("COMMIT", {}, Exception("database is locked"))
            )

    async def test_share_removed_before_reread_is_conflict(self, db, directory, monkeypatch):
        alice = directory["alice"]
        album_id = await create_album(db, alice)

        # insert이 성공했다고 보고하지만 실제 row는 없음 (동시 unshare 상황)
        async def vanished(self, entry):
            return True

        monkeypatch.setattr(AlbumStore, "insert_share_if_absent", vanished)
        with pytest.raises(ConflictError):
            await SharingService(db).share_album(album_id, alice, ShareCreate(username="bob"))


# =============================================================================
# End-to-end scenario
# =============================================================================

async def test_email_share_then_public_link_rotation_and_revocation(db, directory):
    """Owner shares by email before the invitee registers, then rotates and revokes the link."""
    alice = directory["alice"]
    album_id = await create_album(db, alice, "A")
    await SharingService(db).share_album(album_id, alice, ShareCreate(email="u2@x.com"))
    await db.commit()

    u2 = User(email="u2@x.com", username="u2")
    db.add(u2)
    await db.commit()

    album = await AlbumStore(db).get(album_id)
    assert evaluate(album, Principal(user_id=u2.id, email="u2@x.com")) == AccessLevel.VIEW

    service = PublicLinkService(db)
    t1 = (await service.generate_public_token(album_id, alice)).public_token
    await db.commit()
    assert (await service.resolve_public_album(t1)).id == album_id

    t2 = (await service.generate_public_token(album_id, alice)).public_token
    await db.commit()
    with pytest.raises(PublicAlbumNotFoundError):
        await service.resolve_public_album(t1)
    assert (await service.resolve_public_album(t2)).id == album_id

    await service.revoke_public_access(album_id, alice)
    await db.commit()
    with pytest.raises(PublicAlbumNotFoundError):
        await service.resolve_public_album(t2)
