"""
Unit Tests for ResourceService
Tests for: visibility by access level, validation, categories, download counting
"""
import pytest

from infohub.core.exceptions import ConflictError, ResourceItemNotFoundError, ValidationError
from infohub.core.rbac import Role
from infohub.models.resource import AccessLevel, ResourceStatus
from infohub.services.resource_service import ResourceFilters, ResourceService


async def _resource(service: ResourceService, creator, **overrides):
    data = {
        "title": "Fractions worksheet",
        "resource_type": "PDF",
        "file_url": "/uploads/resources/fractions.pdf",
    }
    data.update(overrides)
    return await service.create(data, creator)


class TestVisibility:
    """Test who sees which resources"""

    @pytest.mark.asyncio
    async def test_listing_by_audience(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        parent = await make_user(Role.PARENT)
        service = ResourceService(db_session)

        await _resource(service, teacher, title="Public sheet")
        await _resource(service, teacher, title="Grade sheet", access_level="grade_specific")
        await _resource(service, teacher, title="Staff notes", access_level="teachers")
        await _resource(service, teacher, title="Unfinished", status="draft")

        def titles(result):
            return sorted(r["title"] for r in result["data"])

        anonymous = await service.list_resources(ResourceFilters())
        as_parent = await service.list_resources(ResourceFilters(), parent)
        as_teacher = await service.list_resources(ResourceFilters(), teacher)

        assert titles(anonymous) == ["Public sheet"]
        assert titles(as_parent) == ["Grade sheet", "Public sheet"]
        assert len(as_teacher["data"]) == 4

    @pytest.mark.asyncio
    async def test_teacher_only_resource_hidden_from_parent(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        parent = await make_user(Role.PARENT)
        service = ResourceService(db_session)
        resource = await _resource(service, teacher, access_level="teachers")

        with pytest.raises(ResourceItemNotFoundError):
            await service.get(resource.id, parent)
        assert (await service.get(resource.id, teacher)).access_level == AccessLevel.TEACHERS


class TestValidation:

    @pytest.mark.asyncio
    async def test_type_required(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        with pytest.raises(ValidationError):
            await ResourceService(db_session).create({"title": "No type"}, teacher)

    @pytest.mark.asyncio
    async def test_external_platform_needs_url(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        with pytest.raises(ValidationError):
            await _resource(ResourceService(db_session), teacher, resource_type="External Platform", file_url=None)

    @pytest.mark.asyncio
    async def test_unknown_category_and_difficulty(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        service = ResourceService(db_session)

        with pytest.raises(ValidationError):
            await _resource(service, teacher, category_id=999)
        with pytest.raises(ValidationError):
            await _resource(service, teacher, difficulty="expert")


class TestCategories:

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, db_session):
        service = ResourceService(db_session)
        await service.create_category({"name": "math", "display_name": "Mathematics"})

        with pytest.raises(ConflictError):
            await service.create_category({"name": "math", "display_name": "Maths again"})

    @pytest.mark.asyncio
    async def test_category_in_use_cannot_be_deleted(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        service = ResourceService(db_session)
        category = await service.create_category({"name": "science", "display_name": "Science"})
        await _resource(service, teacher, category_id=category.id)

        with pytest.raises(ConflictError):
            await service.delete_category(category.id)

        counts = {c["name"]: c["resourceCount"] for c in await service.list_categories()}
        assert counts == {"science": 1}


class TestCounters:

    @pytest.mark.asyncio
    async def test_download_and_bulk(self, db_session, make_user):
        teacher = await make_user(Role.TEACHER)
        service = ResourceService(db_session)
        resource = await _resource(service, teacher)

        await service.record_download(resource.id)
        result = await service.record_download(resource.id)
        assert result["downloadCount"] == 2
        assert result["url"] == "/uploads/resources/fractions.pdf"

        bulk = await service.bulk("archive", [resource.id, 12345])
        assert bulk == {"action": "archive", "affectedCount": 1}
        assert (await service.get(resource.id, teacher)).status == ResourceStatus.ARCHIVED

        analytics = await service.analytics()
        assert analytics["archived"] == 1
        assert analytics["totalDownloads"] == 2
