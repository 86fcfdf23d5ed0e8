import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import AnonymousUser, Deputization
from questionbank.questions.models import QuestionCollaborator
from questionbank.questions.roles import RoleService


def test_collaborator_role_names():
    collaborator = QuestionCollaborator(is_author=True, is_copyright_holder=False)
    assert collaborator.has_role("author")
    assert not collaborator.has_role("copyright_holder")
    assert collaborator.has_role("any")
    assert collaborator.has_role("is_listed")
    assert not QuestionCollaborator(is_author=False, is_copyright_holder=False).has_role("any")
    with pytest.raises(ValueError):
        collaborator.has_role("editor")


@pytest.mark.asyncio
async def test_creator_gets_both_roles(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    question = await make_question(author)

    assert await roles.has_role(question, author, "author")
    assert await roles.has_role(question, author, "copyright_holder")
    assert await roles.has_all_roles(question)
    assert not await roles.has_role(question, other_user, "is_listed")
    assert not await roles.has_role(question, AnonymousUser(), "any")


@pytest.mark.asyncio
async def test_has_all_roles_needs_both_roles_filled(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    question = await make_question(author)
    collaborator = await roles.collaborator_for(question, author)

    await roles.revoke_roles(collaborator, author=False, copyright_holder=True)
    assert not await roles.has_all_roles(question)

    # Roles may be split across collaborators
    await roles.add_collaborator(question, other_user, is_copyright_holder=True)
    assert await roles.has_all_roles(question)


@pytest.mark.asyncio
async def test_deputy_acts_with_deputizer_roles(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    question = await make_question(author)
    assert not await roles.has_role_permission(question, other_user, "author")

    db_session.add(Deputization(deputizer_id=author.id, deputy_id=other_user.id))
    await db_session.flush()

    assert await roles.has_role_permission(question, other_user, "author")
    assert await roles.has_role_permission_as_deputy(question, other_user, "copyright_holder")
    # Deputies act with the roles, they are not listed on the question
    assert not await roles.has_role(question, other_user, "author")
    assert not await roles.has_role_permission(question, AnonymousUser(), "any")


@pytest.mark.asyncio
async def test_role_requests_are_granted_or_rejected(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    question = await make_question(author)
    collaborator = await roles.add_collaborator(question, other_user)
    assert collaborator.position == 1
    assert await roles.roleless_collaborators(question) == [collaborator]

    with pytest.raises(ValueError):
        await roles.request_role_change(collaborator, other_user)

    request = await roles.request_role_change(collaborator, other_user, toggle_is_author=True)
    assert await roles.pending_role_requests(question) == [request]

    await roles.grant_request(request)
    assert collaborator.is_author
    assert not collaborator.is_copyright_holder
    assert await roles.pending_role_requests(question) == []

    request = await roles.request_role_change(collaborator, other_user, toggle_is_copyright_holder=True)
    await roles.reject_request(request)
    assert not collaborator.is_copyright_holder
    assert await roles.pending_role_requests(question) == []


@pytest.mark.asyncio
async def test_requests_auto_granted_when_last_role_holder_leaves(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    question = await make_question(author)
    newcomer = await roles.add_collaborator(question, other_user)
    await roles.request_role_change(newcomer, other_user, toggle_is_author=True, toggle_is_copyright_holder=True)

    # Someone still holds a role, so nothing happens on its own
    assert await roles.grant_all_requests_if_no_role_holders_left(question) == 0
    assert not newcomer.is_author

    await roles.remove_collaborator(await roles.collaborator_for(question, author))

    assert newcomer.is_author
    assert newcomer.is_copyright_holder
    assert await roles.pending_role_requests(question) == []
    assert await roles.collaborators(question) == [newcomer]


@pytest.mark.asyncio
async def test_granting_a_role_drop_hands_roles_to_pending_requests(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    question = await make_question(author)
    owner = await roles.collaborator_for(question, author)
    newcomer = await roles.add_collaborator(question, other_user)
    await roles.request_role_change(newcomer, other_user, toggle_is_author=True)
    stepping_down = await roles.request_role_change(
        owner, author, toggle_is_author=True, toggle_is_copyright_holder=True
    )

    await roles.grant_request(stepping_down)

    assert not owner.is_author
    assert not owner.is_copyright_holder
    assert newcomer.is_author
    assert await roles.pending_role_requests(question) == []
    assert any(c.has_role("any") for c in await roles.collaborators(question))


@pytest.mark.asyncio
async def test_copy_roles(db_session: AsyncSession, author, other_user, make_question):
    roles = RoleService(db_session)
    source = await make_question(author)
    await roles.add_collaborator(source, other_user, is_author=True)
    target = await make_question(other_user, content="copy")
    await roles.destroy_collaborators(await roles.collaborators(target))

    await roles.copy_roles(source, target)
    copied = {(c.user_id, c.is_author, c.is_copyright_holder) for c in await roles.collaborators(target)}
    assert copied == {(author.id, True, True), (other_user.id, True, False)}
