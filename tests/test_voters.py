"""
Tests for permission attributes decided by the organization and user voters.
"""
from uuid import uuid4

import pytest

from roleguard.core.permissions import Permission
from roleguard.repositories import RoleRepository, UserRepository
from roleguard.services.authorization_service import AuthorizationService
from roleguard.services.voters import VoteResult
from tests.utils import add_assignment, create_user, load_user


class StaticVoter:
    """Claims every attribute and always casts the same vote."""

    def __init__(self, result: VoteResult):
        self.result = result
        self.calls = 0

    def supports(self, attribute, subject):
        return True

    async def vote(self, authorization, principal, attribute, subject):
        self.calls += 1
        return self.result


class TestOrganizationVoter:

    @pytest.mark.asyncio
    async def test_member_can_view(self, authorization_service, session, role_ids):
        org_id = uuid4()
        user_id = await create_user(session, "member@example.com", [role_ids["ROLE_USER"]], organization_id=org_id)
        user = await load_user(session, user_id)

        assert await authorization_service.is_granted(user, Permission.ORGANIZATION_VIEW.value, subject=org_id)
        assert await authorization_service.is_granted(
            user, Permission.ORGANIZATION_MEMBERS_VIEW.value, subject=org_id
        )
        assert not await authorization_service.is_granted(user, Permission.ORGANIZATION_EDIT.value, subject=org_id)

    @pytest.mark.asyncio
    async def test_inherited_role_counts(self, authorization_service, session, role_ids):
        org_id = uuid4()
        user_id = await create_user(
            session, "editor@example.com", [role_ids["ROLE_EDITOR"]], organization_id=org_id
        )
        user = await load_user(session, user_id)

        assert await authorization_service.is_granted(user, Permission.ORGANIZATION_VIEW.value, subject=org_id)

    @pytest.mark.asyncio
    async def test_platform_roles_do_not_make_a_member(self, authorization_service, session, role_ids):
        user_id = await create_user(session, "outsider@example.com", [role_ids["ROLE_MODERATOR"]])
        user = await load_user(session, user_id)

        assert not await authorization_service.is_granted(
            user, Permission.ORGANIZATION_VIEW.value, subject=uuid4()
        )

    @pytest.mark.asyncio
    async def test_admin_edits_but_only_owner_deletes(self, authorization_service, session, role_ids):
        org_id = uuid4()
        admin_id = await create_user(session, "admin@example.com", [role_ids["ROLE_ADMIN"]], organization_id=org_id)
        owner_id = await create_user(session, "owner@example.com", [role_ids["ROLE_OWNER"]], organization_id=org_id)
        admin = await load_user(session, admin_id)
        owner = await load_user(session, owner_id)

        assert await authorization_service.is_granted(admin, Permission.ORGANIZATION_EDIT.value, subject=org_id)
        assert await authorization_service.is_granted(
            admin, Permission.ORGANIZATION_INVITES_MANAGE.value, subject=org_id
        )
        assert not await authorization_service.is_granted(
            admin, Permission.ORGANIZATION_DELETE.value, subject=org_id
        )
        assert await authorization_service.is_granted(owner, Permission.ORGANIZATION_DELETE.value, subject=org_id)

    @pytest.mark.asyncio
    async def test_other_organization_does_not_count(self, authorization_service, session, role_ids):
        org_id = uuid4()
        user_id = await create_user(session, "elsewhere@example.com", [role_ids["ROLE_OWNER"]], organization_id=org_id)
        user = await load_user(session, user_id)

        assert not await authorization_service.is_granted(
            user, Permission.ORGANIZATION_VIEW.value, subject=uuid4()
        )

    @pytest.mark.asyncio
    async def test_platform_admin_administers_any_organization(self, authorization_service, session, role_ids):
        org_id = uuid4()
        admin_id = await create_user(session, "root@example.com", [role_ids["ROLE_ADMIN"]])
        admin = await load_user(session, admin_id)

        assert await authorization_service.is_granted(admin, Permission.ORGANIZATION_EDIT.value, subject=org_id)
        assert await authorization_service.is_granted(admin, Permission.ORGANIZATION_DELETE.value, subject=org_id)
        assert not await authorization_service.is_granted(
            admin, Permission.ORGANIZATION_VIEW.value, subject=org_id
        )

    @pytest.mark.asyncio
    async def test_subject_may_be_an_object_with_id(self, authorization_service, session, role_ids):
        class Organization:
            def __init__(self, id):
                self.id = id

        org_id = uuid4()
        user_id = await create_user(session, "obj@example.com", [role_ids["ROLE_USER"]], organization_id=org_id)
        user = await load_user(session, user_id)

        assert await authorization_service.is_granted(
            user, Permission.ORGANIZATION_VIEW.value, subject=Organization(org_id)
        )


class TestUserVoter:

    @pytest.mark.asyncio
    async def test_self_service(self, authorization_service, session, role_ids):
        user_id = await create_user(session, "self@example.com", [role_ids["ROLE_USER"]])
        user = await load_user(session, user_id)

        assert await authorization_service.is_granted(user, Permission.USER_VIEW.value, subject=user_id)
        assert await authorization_service.is_granted(user, Permission.USER_EDIT.value, subject=user_id)
        assert not await authorization_service.is_granted(user, Permission.USER_DELETE.value, subject=user_id)
        assert not await authorization_service.is_granted(
            user, Permission.USER_ROLES_MANAGE.value, subject=user_id
        )

    @pytest.mark.asyncio
    async def test_admin_manages_others(self, authorization_service, session, role_ids):
        admin_id = await create_user(session, "admin@example.com", [role_ids["ROLE_OWNER"]])
        other_id = await create_user(session, "other@example.com", [role_ids["ROLE_USER"]])
        admin = await load_user(session, admin_id)

        for permission in Permission:
            if permission.value.startswith("user."):
                assert await authorization_service.is_granted(admin, permission.value, subject=other_id)

    @pytest.mark.asyncio
    async def test_moderator_views_and_edits_only(self, authorization_service, session, role_ids):
        moderator_id = await create_user(session, "mod@example.com", [role_ids["ROLE_MODERATOR"]])
        other_id = await create_user(session, "other@example.com", [role_ids["ROLE_USER"]])
        moderator = await load_user(session, moderator_id)

        assert await authorization_service.is_granted(moderator, Permission.USER_VIEW.value, subject=other_id)
        assert await authorization_service.is_granted(moderator, Permission.USER_EDIT.value, subject=other_id)
        assert not await authorization_service.is_granted(
            moderator, Permission.USER_DELETE.value, subject=other_id
        )

    @pytest.mark.asyncio
    async def test_plain_user_denied_on_others(self, authorization_service, session, role_ids):
        user_id = await create_user(session, "plain@example.com", [role_ids["ROLE_EDITOR"]])
        other_id = await create_user(session, "other@example.com", [role_ids["ROLE_USER"]])
        user = await load_user(session, user_id)

        assert not await authorization_service.is_granted(user, Permission.USER_VIEW.value, subject=other_id)

    @pytest.mark.asyncio
    async def test_organization_admin_has_no_platform_user_rights(self, authorization_service, session, role_ids):
        admin_id = await create_user(
            session, "orgadmin@example.com", [role_ids["ROLE_ADMIN"]], organization_id=uuid4()
        )
        other_id = await create_user(session, "other@example.com", [role_ids["ROLE_USER"]])
        admin = await load_user(session, admin_id)

        assert not await authorization_service.is_granted(admin, Permission.USER_DELETE.value, subject=other_id)


class TestVoting:

    @pytest.mark.asyncio
    async def test_unclaimed_attribute_denied(self, authorization_service, session, role_ids):
        admin_id = await create_user(session, "admin@example.com", [role_ids["ROLE_OWNER"]])
        admin = await load_user(session, admin_id)

        assert not await authorization_service.is_granted(admin, "report.view", subject=uuid4())
        assert not await authorization_service.is_granted(admin, Permission.USER_VIEW.value)

    @pytest.mark.asyncio
    async def test_inactive_principal_denied(self, authorization_service, session, role_ids):
        user_id = await create_user(session, "gone@example.com", [role_ids["ROLE_OWNER"]], is_active=False)
        user = await load_user(session, user_id)

        assert not await authorization_service.is_granted(user, Permission.USER_VIEW.value, subject=user_id)

    @pytest.mark.asyncio
    async def test_first_decisive_vote_wins(self, session, cache, role_ids):
        user_id = await create_user(session, "voter@example.com")
        user = await load_user(session, user_id)
        abstain = StaticVoter(VoteResult.ABSTAIN)
        deny = StaticVoter(VoteResult.DENIED)
        grant = StaticVoter(VoteResult.GRANTED)

        def service(*voters):
            return AuthorizationService(
                role_repository=RoleRepository(session),
                user_repository=UserRepository(session),
                hierarchy_cache=cache,
                voters=voters,
            )

        assert await service(abstain, grant, deny).is_granted(user, "report.view")
        assert not await service(deny, grant).is_granted(user, "report.view")
        assert not await service(abstain).is_granted(user, "report.view")
        assert grant.calls == 1
        assert abstain.calls == 2

    @pytest.mark.asyncio
    async def test_role_attributes_skip_voters(self, session, cache, role_ids):
        user_id = await create_user(session, "roles@example.com", [role_ids["ROLE_USER"]])
        user = await load_user(session, user_id)
        grant = StaticVoter(VoteResult.GRANTED)
        service = AuthorizationService(
            role_repository=RoleRepository(session),
            user_repository=UserRepository(session),
            hierarchy_cache=cache,
            voters=[grant],
        )

        assert not await service.is_granted(user, "ROLE_ADMIN")
        assert grant.calls == 0
