import pytest

from canvass_app.core.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from canvass_app.formbuilder.permissions import AccessResolver
from canvass_app.formbuilder.records import Role
from canvass_app.formbuilder.services import FormService
from tests.fakes import InMemoryFormStore


@pytest.fixture
def store():
    return InMemoryFormStore()


@pytest.fixture
def people(store):
    return (
        store.add_user("owner@example.com", "Owner"),
        store.add_user("editor@example.com", "Editor"),
        store.add_user("viewer@example.com", "Viewer"),
    )


@pytest.fixture
def service(store):
    return FormService(store, AccessResolver(store, lock_toggle_requires_owner=False))


@pytest.fixture
def detail(service, people, store):
    owner, editor, viewer = people
    created = service.create(
        owner.id,
        " Team survey ",
        questions=[
            {"text": "Name", "type": "text", "is_required": True},
            {"text": "Pick", "type": "radio", "options": ["a", "b"]},
        ],
    )
    store.upsert_collaborator(created.form.id, editor.id, Role.EDITOR)
    store.upsert_collaborator(created.form.id, viewer.id, Role.VIEWER)
    return created


class TestCreate:
    def test_creates_form_and_questions(self, detail):
        assert detail.form.title == "Team survey"
        assert detail.role == Role.OWNER
        assert detail.can_edit and not detail.is_collaborator
        assert [(q.text, q.order_index) for q in detail.questions] == [("Name", 0), ("Pick", 1)]

    def test_blank_title(self, service, people):
        with pytest.raises(ValidationError) as exc:
            service.create(people[0].id, "  ", questions=[])
        assert exc.value.message == "Form title is required"

    def test_invalid_questions_create_nothing(self, service, people, store):
        with pytest.raises(ValidationError):
            service.create(people[0].id, "T", questions=[{"text": "", "type": "text"}])
        assert store.forms == {}

    def test_question_failure_removes_the_form(self, service, people, store):
        store.fail_on["insert_question"] = (StorageError("boom"), None)
        with pytest.raises(StorageError):
            service.create(people[0].id, "T", questions=[{"text": "Q", "type": "text"}])
        assert store.forms == {}


class TestDetailAndUpdate:
    def test_collaborator_view(self, service, detail, people):
        _, editor, viewer = people
        seen = service.detail(detail.form.id, viewer.id)
        assert seen.collaborator_role == Role.VIEWER
        assert seen.is_collaborator and not seen.can_edit
        assert service.detail(detail.form.id, editor.id).can_edit

    def test_editor_updates(self, service, detail, people):
        _, editor, _ = people
        name, pick = detail.questions
        updated = service.update(
            detail.form.id,
            editor.id,
            {"description": "Now with more"},
            [{"id": pick.id, "text": "Pick one", "type": "radio", "options": ["a"]}],
        )
        assert updated.form.description == "Now with more"
        assert [(q.id, q.text) for q in updated.questions] == [(pick.id, "Pick one")]

    def test_viewer_cannot_update(self, service, detail, people):
        with pytest.raises(AccessDeniedError):
            service.update(detail.form.id, people[2].id, {"title": "x"})


class TestDeleteAndLock:
    def test_only_owner_deletes(self, service, detail, people, store):
        owner, editor, _ = people
        with pytest.raises(AccessDeniedError):
            service.delete(detail.form.id, editor.id)
        service.delete(detail.form.id, owner.id)
        assert store.get_form(detail.form.id) is None
        assert store.questions == {}
        assert store.collaborators == {}

    def test_any_collaborator_toggles_lock(self, service, detail, people):
        form = service.set_lock(detail.form.id, people[2].id, True)
        assert form.is_locked is True
        assert service.set_lock(detail.form.id, people[1].id, False).is_locked is False

    def test_lock_requires_bool(self, service, detail, people):
        with pytest.raises(ValidationError):
            service.set_lock(detail.form.id, people[0].id, "yes")

    def test_owner_only_lock_setting(self, store, detail, people):
        strict = FormService(store, AccessResolver(store, lock_toggle_requires_owner=True))
        with pytest.raises(AccessDeniedError):
            strict.set_lock(detail.form.id, people[1].id, True)


class TestCollaborators:
    def test_add_and_update_role(self, service, detail, people, store):
        owner = people[0]
        newcomer = store.add_user("new@example.com", "New")
        added = service.add_collaborator(detail.form.id, owner.id, "NEW@example.com", Role.VIEWER)
        assert (added.user_id, added.role) == (newcomer.id, Role.VIEWER)
        again = service.add_collaborator(detail.form.id, owner.id, "new@example.com", Role.EDITOR)
        assert again.id == added.id and again.role == Role.EDITOR

    def test_add_rules(self, service, detail, people):
        owner, editor, _ = people
        with pytest.raises(AccessDeniedError):
            service.add_collaborator(detail.form.id, editor.id, "x@example.com", Role.VIEWER)
        with pytest.raises(ValidationError):
            service.add_collaborator(detail.form.id, owner.id, "x@example.com", Role.OWNER)
        with pytest.raises(NotFoundError) as exc:
            service.add_collaborator(detail.form.id, owner.id, "ghost@example.com", Role.VIEWER)
        assert exc.value.message == "User not found"
        with pytest.raises(ConflictError):
            service.add_collaborator(detail.form.id, owner.id, owner.email, Role.EDITOR)

    def test_remove(self, service, detail, people):
        owner, editor, _ = people
        service.remove_collaborator(detail.form.id, owner.id, editor.id)
        assert [c.user_id for c in service.collaborators(detail.form.id, owner.id)] == [people[2].id]
        with pytest.raises(NotFoundError) as exc:
            service.remove_collaborator(detail.form.id, owner.id, editor.id)
        assert exc.value.message == "Collaborator not found"


def test_reorder_requires_edit(service, detail, people):
    name, pick = detail.questions
    with pytest.raises(AccessDeniedError):
        service.reorder(detail.form.id, people[2].id, [pick.id, name.id])
    ordered = service.reorder(detail.form.id, people[1].id, [pick.id, name.id])
    assert [q.id for q in ordered] == [pick.id, name.id]
