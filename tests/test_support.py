import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import AnonymousUser, User
from questionbank.database import atomic
from questionbank.licenses.service import LicenseService
from questionbank.projects.service import ProjectService
from questionbank.questions.rendering import render_content


def test_render_content_escapes_and_wraps_paragraphs():
    assert render_content("") == ""
    assert render_content("   ") == ""
    assert render_content("a < b") == "<p>a &lt; b</p>"
    assert render_content("one\ntwo\n\nthree") == "<p>one<br/>two</p><p>three</p>"


@pytest.mark.asyncio
async def test_atomic_rolls_back_everything_when_an_inner_block_fails(db_session: AsyncSession):
    with pytest.raises(RuntimeError):
        async with atomic(db_session):
            db_session.add(User(email="outer@test.edu"))
            await db_session.flush()
            async with atomic(db_session):
                db_session.add(User(email="inner@test.edu"))
                await db_session.flush()
                raise RuntimeError("boom")

    result = await db_session.execute(select(func.count(User.id)))
    assert result.scalar() == 0
    assert db_session.info["atomic_depth"] == 0


@pytest.mark.asyncio
async def test_atomic_commits_only_at_the_outermost_block(db_session: AsyncSession):
    async with atomic(db_session):
        async with atomic(db_session):
            db_session.add(User(email="nested@test.edu"))
            await db_session.flush()
        assert db_session.in_transaction()

    await db_session.rollback()
    result = await db_session.execute(select(func.count(User.id)))
    assert result.scalar() == 1


@pytest.mark.asyncio
async def test_default_license_is_created_once(db_session: AsyncSession):
    licenses = LicenseService(db_session)
    first = await licenses.default_license()
    second = await licenses.default_license()
    assert first is second
    assert first.short_name == "CC BY 4.0"


@pytest.mark.asyncio
async def test_default_project(db_session: AsyncSession, author):
    projects = ProjectService(db_session)
    project = await projects.default_for_user(author)
    assert project.name == "Ada Author's Project"
    assert await projects.default_for_user(author) is project
    assert await projects.all_for_user(author) == [project]
    assert await projects.all_for_user(AnonymousUser()) == []
