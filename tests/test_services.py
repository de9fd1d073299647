"""
Comprehensive tests for service classes.
Tests registration, login, session resolution, listing creation and the sale lifecycle.
"""

import asyncio
import pytest
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import func, select

from flatmarket.models.user import User, UserRole
from flatmarket.models.flat import Flat, FlatStatus
from flatmarket.repositories.user import UserRepository
from flatmarket.schemas.auth import RegisterRequest
from flatmarket.schemas.flat import FlatCreateForm
from flatmarket.services.auth import AuthService
from flatmarket.services.flat import FlatService
from flatmarket.utils.auth import PasswordHasher, TokenService
from flatmarket.utils.exceptions import (
    ValidationError,
    ConflictError,
    DuplicateEmailError,
    InvalidCredentialsError,
    UnauthenticatedError,
    UserNotFoundError,
    ListingNotFoundError,
    ListingAlreadySoldError,
    UnsupportedMediaError,
    PayloadTooLargeError,
    UploadError
)
from tests.conftest import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    DEFAULT_PASSWORD,
    FakeStorage,
    UserFactory,
    make_image
)


def registration(**overrides) -> RegisterRequest:
    values = {
        "name": "Asha Verma",
        "email": "asha@example.com",
        "password": "p1",
        "phone": "9876543210",
        "address": "12 Park Street",
        "postal_code": "700016",
    }
    values.update(overrides)
    return RegisterRequest(**values)


def listing(**overrides) -> FlatCreateForm:
    values = {
        "title": "2BHK near the lake",
        "address": "4 Lake Road, Pune",
        "price": "4500000",
        "description": "Sunny corner flat",
        "amenities": '["parking", "lift"]',
    }
    values.update(overrides)
    return FlatCreateForm(**values)


async def count_rows(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestAuthServiceRegister:
    """Test user registration."""

    @pytest.mark.asyncio
    async def test_register_success(self, auth_service: AuthService, hasher: PasswordHasher):
        """Registration stores a hashed password and the default role."""
        user = await auth_service.register(registration())

        assert user.id is not None
        assert user.email == "asha@example.com"
        assert user.role == UserRole.USER
        assert user.profile_image is None
        assert user.hashed_password != "p1"
        assert hasher.verify("p1", user.hashed_password)
        assert "hashed_password" not in user.to_dict()

    @pytest.mark.asyncio
    async def test_register_with_profile_image(self, auth_service: AuthService, storage: FakeStorage):
        """The profile image is uploaded with the profile preset and its URL stored."""
        user = await auth_service.register(registration(), make_image("me.jpg"))

        assert user.profile_image == "https://images.test/profile_images/me.jpg"
        assert len(storage.calls) == 1
        assert storage.calls[0]["folder"] == "profile_images"
        assert storage.calls[0]["transformation"][0]["gravity"] == "face"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["name", "email", "password", "phone", "address", "postal_code"])
    async def test_register_missing_field(self, auth_service: AuthService, db_session, missing):
        """Every field is required."""
        with pytest.raises(ValidationError, match="All fields are required"):
            await auth_service.register(registration(**{missing: None}))

        assert await count_rows(db_session, User) == 0

    @pytest.mark.asyncio
    async def test_register_blank_field(self, auth_service: AuthService):
        """Whitespace-only values count as missing."""
        with pytest.raises(ValidationError):
            await auth_service.register(registration(name="   "))

    @pytest.mark.asyncio
    async def test_register_invalid_email(self, auth_service: AuthService):
        with pytest.raises(ValidationError):
            await auth_service.register(registration(email="not-an-email"))

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, auth_service: AuthService, storage: FakeStorage, db_session):
        """A second registration with the same email is rejected before any upload."""
        await auth_service.register(registration())

        with pytest.raises(DuplicateEmailError) as exc_info:
            await auth_service.register(registration(name="Someone Else"), make_image("me.jpg"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "User already exists"
        assert storage.calls == []
        assert await count_rows(db_session, User) == 1

    @pytest.mark.asyncio
    async def test_register_email_is_case_sensitive(self, auth_service: AuthService):
        """Emails differing only in case are different accounts."""
        first = await auth_service.register(registration(email="asha@example.com"))
        second = await auth_service.register(registration(email="Asha@example.com"))

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_register_upload_failure_creates_no_user(
        self,
        db_session,
        test_settings
    ):
        """A failed profile upload leaves no account behind."""
        service = AuthService(db_session, test_settings, FakeStorage(fail_on={"me.jpg"}))

        with pytest.raises(UploadError):
            await service.register(registration(), make_image("me.jpg"))

        assert await count_rows(db_session, User) == 0

    @pytest.mark.asyncio
    async def test_register_rejects_non_image(self, auth_service: AuthService, storage: FakeStorage):
        with pytest.raises(UnsupportedMediaError):
            await auth_service.register(registration(), make_image("cv.pdf", content_type="application/pdf"))

        assert storage.calls == []


class TestAuthServiceLogin:
    """Test login paths."""

    @pytest.mark.asyncio
    async def test_login_success(self, auth_service: AuthService, test_user: User, token_service: TokenService):
        """A correct password yields a token carrying the stored role."""
        user, token = await auth_service.login(test_user.email, DEFAULT_PASSWORD)

        claims = token_service.verify(token)
        assert user.id == test_user.id
        assert claims.user_id == test_user.id
        assert claims.role == UserRole.USER
        assert claims.expires_at - datetime.now(timezone.utc) <= timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, auth_service: AuthService, test_user: User):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await auth_service.login(test_user.email, "p2")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Invalid Password"

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, auth_service: AuthService):
        with pytest.raises(UserNotFoundError) as exc_info:
            await auth_service.login("nobody@example.com", "p1")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_login_email_case_mismatch(self, auth_service: AuthService, test_user: User):
        """Lookup is exact; a differently cased email is unknown."""
        with pytest.raises(UserNotFoundError):
            await auth_service.login(test_user.email.upper(), DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,password", [("", "p1"), ("owner@example.com", ""), (None, None)])
    async def test_login_missing_fields(self, auth_service: AuthService, email, password):
        with pytest.raises(ValidationError):
            await auth_service.login(email, password)

    @pytest.mark.asyncio
    async def test_admin_bypass(self, auth_service: AuthService, admin_user: User, token_service: TokenService):
        """The break-glass pair logs in without matching the stored hash."""
        user, token = await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert user.id == admin_user.id
        assert token_service.verify(token).role == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_admin_bypass_without_bcrypt_hash(
        self,
        db_session,
        auth_service: AuthService,
        token_service: TokenService
    ):
        """The break-glass pair works even when the stored hash is unusable."""
        user_data = UserFactory.create_user_data(email=ADMIN_EMAIL, name="Site Admin", role=UserRole.ADMIN)
        user_data["hashed_password"] = "not-a-bcrypt-hash"
        admin = await UserRepository(db_session).create_user(user_data)

        user, token = await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert user.id == admin.id
        assert token_service.verify(token).user_id == admin.id

    @pytest.mark.asyncio
    async def test_admin_bypass_matches_email_as_sent(self, auth_service: AuthService, admin_user: User):
        """A padded admin email finds the account but does not trigger the bypass."""
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(f" {ADMIN_EMAIL} ", ADMIN_PASSWORD)

    @pytest.mark.asyncio
    async def test_admin_stored_password_still_works(self, auth_service: AuthService, admin_user: User):
        user, _ = await auth_service.login(ADMIN_EMAIL, "stored-admin-password")

        assert user.id == admin_user.id

    @pytest.mark.asyncio
    async def test_bypass_password_does_not_work_for_other_users(
        self,
        auth_service: AuthService,
        test_user: User,
        admin_user: User
    ):
        """The break-glass password is bound to the admin email."""
        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(test_user.email, ADMIN_PASSWORD)

    @pytest.mark.asyncio
    async def test_bypass_requires_admin_account(self, auth_service: AuthService):
        """Without a stored admin user the bypass email is simply unknown."""
        with pytest.raises(UserNotFoundError):
            await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    @pytest.mark.asyncio
    async def test_bypass_disabled_when_unconfigured(self, db_session, test_settings, storage, admin_user: User):
        """With no configured pair, the admin must use the stored password."""
        settings = test_settings.model_copy(update={"admin_email": None, "admin_password": None})
        service = AuthService(db_session, settings, storage)

        with pytest.raises(InvalidCredentialsError):
            await service.login(ADMIN_EMAIL, ADMIN_PASSWORD)


class TestAuthServiceSession:
    """Test session resolution and profile updates."""

    @pytest.mark.asyncio
    async def test_resolve_session(self, auth_service: AuthService, test_user: User, token_service: TokenService):
        token = token_service.issue(test_user.id, test_user.role)

        user = await auth_service.resolve_session(token)

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_resolve_expired_session(self, auth_service: AuthService, test_user: User, token_service: TokenService):
        token = token_service.issue(test_user.id, test_user.role, now=datetime.now(timezone.utc) - timedelta(hours=25))

        with pytest.raises(UnauthenticatedError, match="Invalid or expired token"):
            await auth_service.resolve_session(token)

    @pytest.mark.asyncio
    async def test_resolve_garbage_token(self, auth_service: AuthService):
        with pytest.raises(UnauthenticatedError):
            await auth_service.resolve_session("garbage")

    @pytest.mark.asyncio
    async def test_resolve_session_for_deleted_user(self, auth_service: AuthService, token_service: TokenService):
        token = token_service.issue(uuid.uuid4(), UserRole.USER)

        with pytest.raises(UserNotFoundError):
            await auth_service.resolve_session(token)

    @pytest.mark.asyncio
    async def test_get_profile(self, auth_service: AuthService, test_user: User):
        user = await auth_service.get_profile(test_user.id)

        assert user.email == test_user.email

    @pytest.mark.asyncio
    async def test_update_profile_image(self, auth_service: AuthService, test_user: User, storage: FakeStorage):
        user = await auth_service.update_profile_image(test_user.id, make_image("new.jpg"))

        assert user.profile_image == "https://images.test/profile_images/new.jpg"
        assert storage.calls[0]["folder"] == "profile_images"

    @pytest.mark.asyncio
    async def test_update_profile_image_failure_keeps_old_reference(
        self,
        db_session,
        test_settings,
        test_user: User
    ):
        service = AuthService(db_session, test_settings, FakeStorage())
        await service.update_profile_image(test_user.id, make_image("old.jpg"))

        failing = AuthService(db_session, test_settings, FakeStorage(fail_on={"new.jpg"}))
        with pytest.raises(UploadError):
            await failing.update_profile_image(test_user.id, make_image("new.jpg"))

        user = await failing.get_profile(test_user.id)
        assert user.profile_image == "https://images.test/profile_images/old.jpg"

    @pytest.mark.asyncio
    async def test_update_profile_image_too_large(self, auth_service: AuthService, test_user: User, test_settings):
        too_big = make_image(data=b"x" * (test_settings.max_image_size + 1))

        with pytest.raises(PayloadTooLargeError):
            await auth_service.update_profile_image(test_user.id, too_big)


class TestFlatServiceCreate:
    """Test listing creation."""

    @pytest.mark.asyncio
    async def test_create_flat(self, flat_service: FlatService, test_user: User, storage: FakeStorage):
        """A new flat is pending, owned by the caller, with URLs in submission order."""
        images = [make_image("a.jpg"), make_image("b.jpg")]

        flat = await flat_service.create_flat(test_user.id, listing(), images)

        assert flat.status == FlatStatus.PENDING
        assert flat.user_id == test_user.id
        assert flat.price == Decimal("4500000")
        assert flat.amenities == ["parking", "lift"]
        assert flat.images == [
            f"https://images.test/flats/{test_user.id}/a.jpg",
            f"https://images.test/flats/{test_user.id}/b.jpg",
        ]
        assert all(call["folder"] == f"flats/{test_user.id}" for call in storage.calls)

    @pytest.mark.asyncio
    async def test_create_flat_preserves_order_when_uploads_finish_out_of_order(
        self,
        db_session,
        test_settings,
        test_user: User
    ):
        storage = FakeStorage(delays={"a.jpg": 0.06, "b.jpg": 0.03})
        service = FlatService(db_session, test_settings, storage)

        flat = await service.create_flat(
            test_user.id,
            listing(),
            [make_image("a.jpg"), make_image("b.jpg"), make_image("c.jpg")]
        )

        assert storage.completed == ["c.jpg", "b.jpg", "a.jpg"]
        assert [url.rsplit("/", 1)[1] for url in flat.images] == ["a.jpg", "b.jpg", "c.jpg"]

    @pytest.mark.asyncio
    async def test_create_flat_upload_failure_writes_nothing(self, db_session, test_settings, test_user: User):
        service = FlatService(db_session, test_settings, FakeStorage(fail_on={"b.jpg"}))

        with pytest.raises(UploadError):
            await service.create_flat(test_user.id, listing(), [make_image("a.jpg"), make_image("b.jpg")])

        assert await count_rows(db_session, Flat) == 0

    @pytest.mark.asyncio
    async def test_create_flat_without_images(self, flat_service: FlatService, test_user: User):
        with pytest.raises(ValidationError, match="Please upload at least one image"):
            await flat_service.create_flat(test_user.id, listing(), [])

    @pytest.mark.asyncio
    async def test_create_flat_too_many_images(self, flat_service: FlatService, test_user: User, storage: FakeStorage):
        images = [make_image(f"{i}.jpg") for i in range(6)]

        with pytest.raises(ValidationError):
            await flat_service.create_flat(test_user.id, listing(), images)

        assert storage.calls == []

    @pytest.mark.asyncio
    async def test_create_flat_one_bad_image_blocks_all_uploads(
        self,
        flat_service: FlatService,
        test_user: User,
        storage: FakeStorage
    ):
        images = [make_image("a.jpg"), make_image("notes.txt", content_type="text/plain")]

        with pytest.raises(UnsupportedMediaError):
            await flat_service.create_flat(test_user.id, listing(), images)

        assert storage.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["title", "address", "price"])
    async def test_create_flat_missing_field(self, flat_service: FlatService, test_user: User, missing):
        with pytest.raises(ValidationError, match="Title, address and price are required"):
            await flat_service.create_flat(test_user.id, listing(**{missing: ""}), [make_image()])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", ["abc", "-1", "NaN", "Infinity", "12.345"])
    async def test_create_flat_bad_price(self, flat_service: FlatService, test_user: User, price):
        with pytest.raises(ValidationError):
            await flat_service.create_flat(test_user.id, listing(price=price), [make_image()])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price,expected", [
        ("1.000", Decimal("1.00")),
        ("2500.500", Decimal("2500.50")),
        ("750.5", Decimal("750.50")),
    ])
    async def test_create_flat_price_trailing_zeros(
        self,
        flat_service: FlatService,
        test_user: User,
        price,
        expected
    ):
        """Extra trailing zeros do not count as extra precision."""
        flat = await flat_service.create_flat(test_user.id, listing(price=price), [make_image()])

        assert flat.price == expected

    @pytest.mark.asyncio
    async def test_create_flat_keeps_amenity_strings(self, flat_service: FlatService, test_user: User):
        """String amenities are stored as sent; other JSON values are dropped, never stringified."""
        flat = await flat_service.create_flat(
            test_user.id,
            listing(amenities='["wifi", {"name": "gym"}, 24, "parking"]'),
            [make_image()]
        )

        assert flat.amenities == ["wifi", "parking"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', "42"])
    async def test_create_flat_lenient_amenities(self, flat_service: FlatService, test_user: User, raw):
        """Malformed or non-array amenities become an empty list."""
        flat = await flat_service.create_flat(test_user.id, listing(amenities=raw), [make_image()])

        assert flat.amenities == []

    @pytest.mark.asyncio
    async def test_create_flat_default_description(self, flat_service: FlatService, test_user: User):
        flat = await flat_service.create_flat(test_user.id, listing(description=None), [make_image()])

        assert flat.description == ""


class TestFlatServiceLifecycle:
    """Test feeds, approval and sale."""

    @pytest.mark.asyncio
    async def test_list_owned_newest_first(self, flat_service: FlatService, test_user: User, other_user: User):
        first = await flat_service.create_flat(test_user.id, listing(title="First"), [make_image()])
        second = await flat_service.create_flat(test_user.id, listing(title="Second"), [make_image()])
        await flat_service.create_flat(other_user.id, listing(title="Not mine"), [make_image()])

        flats = await flat_service.list_owned(test_user.id)

        assert [flat.id for flat in flats] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_approved_only_approved(self, flat_service: FlatService, test_user: User):
        pending = await flat_service.create_flat(test_user.id, listing(title="Pending"), [make_image()])
        approved = await flat_service.create_flat(test_user.id, listing(title="Approved"), [make_image()])
        sold = await flat_service.create_flat(test_user.id, listing(title="Sold"), [make_image()])
        await flat_service.approve_flat(approved.id)
        await flat_service.approve_flat(sold.id)
        await flat_service.mark_sold(test_user.id, sold.id)

        flats = await flat_service.list_approved()

        assert [flat.id for flat in flats] == [approved.id]
        assert pending.id not in [flat.id for flat in flats]
        assert flats[0].to_dict(include_owner=True)["owner"]["email"] == test_user.email

    @pytest.mark.asyncio
    async def test_approve_flat(self, flat_service: FlatService, test_user: User):
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])

        approved = await flat_service.approve_flat(flat.id)

        assert approved.status == FlatStatus.APPROVED

    @pytest.mark.asyncio
    async def test_approve_twice_conflicts(self, flat_service: FlatService, test_user: User):
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])
        await flat_service.approve_flat(flat.id)

        with pytest.raises(ConflictError):
            await flat_service.approve_flat(flat.id)

    @pytest.mark.asyncio
    async def test_approve_missing_flat(self, flat_service: FlatService):
        with pytest.raises(ListingNotFoundError):
            await flat_service.approve_flat(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_mark_pending_flat_sold(self, flat_service: FlatService, test_user: User, other_user: User):
        """Pending flats are sellable; buyer and sale time are recorded."""
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])

        sold = await flat_service.mark_sold(test_user.id, flat.id, other_user.id)

        assert sold.status == FlatStatus.SOLD
        assert sold.sold_to_user_id == other_user.id
        assert sold.sold_date is not None

    @pytest.mark.asyncio
    async def test_mark_approved_flat_sold(self, flat_service: FlatService, test_user: User):
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])
        await flat_service.approve_flat(flat.id)

        sold = await flat_service.mark_sold(test_user.id, flat.id)

        assert sold.status == FlatStatus.SOLD
        assert sold.sold_to_user_id is None

    @pytest.mark.asyncio
    async def test_mark_sold_twice(self, flat_service: FlatService, test_user: User, other_user: User):
        """The second sale fails and does not overwrite the first."""
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])
        first = await flat_service.mark_sold(test_user.id, flat.id, other_user.id)
        first_sold_date = first.sold_date

        with pytest.raises(ListingAlreadySoldError) as exc_info:
            await flat_service.mark_sold(test_user.id, flat.id, None)

        assert exc_info.value.status_code == 409
        again = await flat_service.flat_repo.get_by_id(flat.id)
        assert again.sold_to_user_id == other_user.id
        assert again.sold_date == first_sold_date

    @pytest.mark.asyncio
    async def test_mark_sold_not_owner(self, flat_service: FlatService, test_user: User, other_user: User):
        """A non-owner gets the same error as for a missing flat."""
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])

        with pytest.raises(ListingNotFoundError) as not_owner:
            await flat_service.mark_sold(other_user.id, flat.id)
        with pytest.raises(ListingNotFoundError) as missing:
            await flat_service.mark_sold(other_user.id, uuid.uuid4())

        assert not_owner.value.detail == missing.value.detail == "Flat not found or you are not owner"
        unchanged = await flat_service.flat_repo.get_by_id(flat.id)
        assert unchanged.status == FlatStatus.PENDING

    @pytest.mark.asyncio
    async def test_sold_flat_cannot_be_approved(self, flat_service: FlatService, test_user: User):
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])
        await flat_service.mark_sold(test_user.id, flat.id)

        with pytest.raises(ConflictError):
            await flat_service.approve_flat(flat.id)

    @pytest.mark.asyncio
    async def test_concurrent_mark_sold_has_one_winner(
        self,
        session_factory,
        test_settings,
        test_user: User,
        other_user: User,
        flat_service: FlatService
    ):
        """Two simultaneous sales: exactly one succeeds."""
        flat = await flat_service.create_flat(test_user.id, listing(), [make_image()])

        async with session_factory() as first_session, session_factory() as second_session:
            first = FlatService(first_session, test_settings, FakeStorage())
            second = FlatService(second_session, test_settings, FakeStorage())

            results = await asyncio.gather(
                first.mark_sold(test_user.id, flat.id, other_user.id),
                second.mark_sold(test_user.id, flat.id, None),
                return_exceptions=True
            )

        successes = [result for result in results if isinstance(result, Flat)]
        failures = [result for result in results if isinstance(result, ListingAlreadySoldError)]
        assert len(successes) == 1
        assert len(failures) == 1
