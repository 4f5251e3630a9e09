"""
Search and pagination tests.

Tests cover:
- Visibility: private orgs return an empty, denied result to strangers
- Page arithmetic: clamping, per_page normalization, full coverage
- Deterministic order when creation timestamps tie
- Text matching across names and tag names, wildcard escaping
- Group filter and the matching-groups facet
- Deleted files never appear
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest

from app.services.catalog import delete_file
from app.services.pagination import normalize_per_page, page_offset, paginate
from app.services.search import search_files
from rockimages_shared.schemas.common import AccessDenial, Role, Visibility

from conftest import add_role, make_file, make_group, make_org, make_user


class TestPagination:
    def test_empty_result_has_one_page(self):
        p = paginate(0, 1, 60)
        assert (p.page, p.total_pages, p.total) == (1, 1, 0)

    def test_page_clamped_high_and_low(self):
        assert paginate(125, 10, 60).page == 3
        assert paginate(125, 0, 60).page == 1
        assert paginate(125, -4, 60).page == 1
        assert paginate(125, None, 60).page == 1

    @pytest.mark.parametrize(
        "requested,expected", [(None, 60), (0, 60), (-1, 60), (1, 1), (200, 200), (5000, 200)]
    )
    def test_per_page_normalization(self, requested, expected):
        assert normalize_per_page(requested, 60, 200) == expected

    def test_offset(self):
        assert page_offset(paginate(125, 3, 60)) == 120


class TestVisibility:
    @pytest.mark.asyncio
    async def test_private_org_denied_to_stranger(self, session):
        u1 = await make_user(session, "u1")
        u2 = await make_user(session, "u2")
        owner = await make_user(session, "owner")
        acme = await make_org(session, owner, visibility=Visibility.PRIVATE)
        await add_role(session, acme, u1, Role.EDITOR)
        files = [await make_file(session, acme, owner, f"{n}.jpg") for n in range(3)]

        denied = await search_files(session, acme.id, u2.id)
        assert denied.denial == AccessDenial.FORBIDDEN
        assert denied.pagination.total == 0 and denied.items == []
        assert denied.can_edit is False

        allowed = await search_files(session, acme.id, u1.id)
        assert allowed.denial is None
        assert allowed.can_edit is True
        assert [i.id for i in allowed.items] == [f.id for f in reversed(files)]

    @pytest.mark.asyncio
    async def test_anonymous_on_private_org(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner, visibility=Visibility.PRIVATE)
        result = await search_files(session, org.id, None)
        assert result.denial == AccessDenial.FORBIDDEN

    @pytest.mark.asyncio
    async def test_missing_org(self, session):
        result = await search_files(session, 5555, None)
        assert result.denial == AccessDenial.NOT_FOUND
        assert result.pagination.total == 0

    @pytest.mark.asyncio
    async def test_public_org_open_to_anonymous_read_only(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        await make_file(session, org, owner)
        result = await search_files(session, org.id, None)
        assert result.denial is None
        assert result.pagination.total == 1
        assert result.can_edit is False


class TestPaging:
    @pytest.mark.asyncio
    async def test_page_past_end_clamps_to_last(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        files = [
            await make_file(session, org, owner, f"match-{n:03d}.jpg", created_at=base + timedelta(minutes=n))
            for n in range(125)
        ]
        await make_file(session, org, owner, "unrelated.jpg", created_at=base)

        result = await search_files(session, org.id, owner.id, query="match", page=10, per_page=60)
        assert result.pagination.total == 125
        assert result.pagination.total_pages == 3
        assert result.pagination.page == 3
        # Newest first, so the last page holds the five oldest matches
        assert [i.id for i in result.items] == [f.id for f in reversed(files[:5])]

    @pytest.mark.asyncio
    async def test_identical_timestamps_page_deterministically(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        same = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        a = await make_file(session, org, owner, "a.jpg", created_at=same)
        b = await make_file(session, org, owner, "b.jpg", created_at=same)

        seen = []
        for page in (1, 2):
            result = await search_files(session, org.id, owner.id, page=page, per_page=1)
            assert result.pagination.total_pages == 2
            seen.extend(i.id for i in result.items)
        assert seen == [b.id, a.id]

        again = [
            (await search_files(session, org.id, owner.id, page=page, per_page=1)).items[0].id
            for page in (1, 2)
        ]
        assert again == seen

    @pytest.mark.asyncio
    @pytest.mark.parametrize("per_page", [1, 3, 7, 23])
    async def test_pages_cover_every_match_once(self, session, per_page):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        ts = datetime(2024, 3, 1, tzinfo=timezone.utc)
        ids = set()
        for n in range(23):
            # Every third file shares a timestamp with its neighbour
            created = ts + timedelta(seconds=n - (n % 3 == 1))
            ids.add((await make_file(session, org, owner, f"f{n}.jpg", created_at=created)).id)

        collected = []
        for page in range(1, math.ceil(23 / per_page) + 1):
            result = await search_files(session, org.id, owner.id, page=page, per_page=per_page)
            collected.extend(i.id for i in result.items)
        assert len(collected) == 23
        assert set(collected) == ids

    @pytest.mark.asyncio
    async def test_default_page_size(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        result = await search_files(session, org.id, owner.id, per_page=0)
        assert result.pagination.per_page == 60


class TestMatching:
    @pytest.mark.asyncio
    async def test_query_matches_names_and_tags_case_insensitively(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        granite = await make_group(session, org, "Granite Samples")
        by_display = await make_file(session, org, owner, "x1.jpg")
        by_display.display_name = "Big GRANITE block"
        by_original = await make_file(session, org, owner, "granite-2.jpg")
        by_original.display_name = "Renamed"
        by_tag = await make_file(session, org, owner, "x3.jpg", groups=(granite,))
        await make_file(session, org, owner, "basalt.jpg")
        await session.flush()

        result = await search_files(session, org.id, owner.id, query="  granite ")
        assert {i.id for i in result.items} == {by_display.id, by_original.id, by_tag.id}
        assert [g.id for g in result.matching_groups] == [granite.id]

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        pct = await make_file(session, org, owner, "100%_quartz.jpg")
        await make_file(session, org, owner, "100x quartz.jpg")

        assert [i.id for i in (await search_files(session, org.id, owner.id, query="%_")).items] == [pct.id]
        assert (await search_files(session, org.id, owner.id, query="0%")).pagination.total == 1

    @pytest.mark.asyncio
    async def test_group_filter(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        tagged_group = await make_group(session, org, "tagged")
        tagged = await make_file(session, org, owner, "t.jpg", groups=(tagged_group,))
        await make_file(session, org, owner, "u.jpg")

        result = await search_files(session, org.id, owner.id, group_id=tagged_group.id)
        assert [i.id for i in result.items] == [tagged.id]
        assert [g.name for g in result.items[0].groups] == ["tagged"]

    @pytest.mark.asyncio
    async def test_facet_only_when_querying_and_limited(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        other = await make_org(session, owner, name="Other")
        for n in range(25):
            await make_group(session, org, f"Rock {n:02d}")
        await make_group(session, other, "Rock elsewhere")

        assert (await search_files(session, org.id, owner.id)).matching_groups == []
        facet = (await search_files(session, org.id, owner.id, query="rock")).matching_groups
        assert len(facet) == 20
        assert facet[0].name == "Rock 00"
        assert all("elsewhere" not in g.name for g in facet)

    @pytest.mark.asyncio
    async def test_other_orgs_files_excluded(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner, name="Mine")
        other = await make_org(session, owner, name="Theirs")
        mine = await make_file(session, org, owner, "same.jpg")
        await make_file(session, other, owner, "same.jpg")

        result = await search_files(session, org.id, owner.id, query="same")
        assert [i.id for i in result.items] == [mine.id]


class TestDeletedExcluded:
    @pytest.mark.asyncio
    async def test_soft_deleted_rows_never_listed(self, session):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        live = await make_file(session, org, owner, "live.jpg")
        await make_file(session, org, owner, "hidden.jpg", deleted=True)

        result = await search_files(session, org.id, owner.id)
        assert [i.id for i in result.items] == [live.id]
        assert (await search_files(session, org.id, owner.id, query="hidden")).pagination.total == 0

    @pytest.mark.asyncio
    async def test_deleted_file_gone_from_search(self, session, storage, transcoder):
        owner = await make_user(session, "owner")
        org = await make_org(session, owner)
        file = await make_file(session, org, owner, "doomed.jpg")
        file_id = file.id

        await delete_file(session, file_id, owner.id, storage, transcoder)
        result = await search_files(session, org.id, owner.id, query="doomed")
        assert result.pagination.total == 0
        assert file_id not in [i.id for i in result.items]
