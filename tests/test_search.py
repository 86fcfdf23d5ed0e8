import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import AnonymousUser, Deputization
from questionbank.questions.models import QuestionType
from questionbank.questions.roles import RoleService
from questionbank.questions.search import QuestionSearch, SearchScope


@pytest.mark.asyncio
async def test_search_filters(db_session: AsyncSession, author, other_user, make_question, make_published):
    published = await make_published(author, content="The speed of light")
    draft = await make_question(author, content="Speed of sound, 100% accurate")
    theirs = await make_question(other_user, content="Colours of the rainbow")
    matching = await make_question(
        other_user, content="Match the capitals", question_type=QuestionType.MATCHING, matchings=[]
    )
    search = QuestionSearch(db_session)

    assert await search.search(None, SearchScope.ALL, None, author) == [published, draft]
    assert await search.search(None, SearchScope.ALL, None, other_user) == [published, theirs, matching]
    assert await search.search(None, SearchScope.PUBLISHED, "", author) == [published]
    assert await search.search(None, SearchScope.MY_DRAFTS, None, author) == [draft]
    assert await search.search(None, SearchScope.MY_DRAFTS, None, other_user) == [theirs, matching]
    assert await search.search(None, SearchScope.MY_PROJECTS, None, other_user) == [theirs, matching]
    assert await search.search(QuestionType.MATCHING, SearchScope.ALL, None, other_user) == [matching]

    assert await search.search(None, SearchScope.ALL, "SPEED", author) == [published, draft]
    assert await search.search(None, SearchScope.ALL, "speed*sound", author) == [draft]
    # SQL wildcards in the text are matched literally
    assert await search.search(None, SearchScope.ALL, "100%", author) == [draft]
    assert await search.search(None, SearchScope.ALL, "_", author) == []


@pytest.mark.asyncio
async def test_anonymous_search_sees_published_questions_only(db_session: AsyncSession, author, make_question, make_published):
    published = await make_published(author, content="Public knowledge")
    await make_question(author, content="Secret draft text")
    search = QuestionSearch(db_session)
    anonymous = AnonymousUser()

    assert await search.search(None, SearchScope.ALL, None, anonymous) == [published]
    assert await search.search(None, SearchScope.PUBLISHED, None, anonymous) == [published]
    assert await search.search(None, SearchScope.MY_DRAFTS, None, anonymous) == []
    assert await search.search(None, SearchScope.MY_PROJECTS, None, anonymous) == []
    assert await search.search(None, SearchScope.ALL, "secret", anonymous) == []


@pytest.mark.asyncio
async def test_drafts_visible_to_role_holders_and_deputies(db_session: AsyncSession, author, other_user, make_user, make_question):
    roles = RoleService(db_session)
    draft = await make_question(author, content="Shared draft")
    search = QuestionSearch(db_session)
    assert await search.search(None, SearchScope.MY_DRAFTS, None, other_user) == []

    # a listed collaborator without a role still cannot see it
    listed = await roles.add_collaborator(draft, other_user)
    assert await search.search(None, SearchScope.MY_DRAFTS, None, other_user) == []

    listed.is_copyright_holder = True
    await db_session.flush()
    assert await search.search(None, SearchScope.MY_DRAFTS, None, other_user) == [draft]

    deputy = await make_user(full_name="Dee Deputy")
    db_session.add(Deputization(deputizer_id=author.id, deputy_id=deputy.id))
    await db_session.flush()
    assert await search.search(None, SearchScope.MY_DRAFTS, None, deputy) == [draft]
