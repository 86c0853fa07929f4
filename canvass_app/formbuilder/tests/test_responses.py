import pytest

from canvass_app.core.errors import (
    AccessDeniedError,
    AuthRequiredError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from canvass_app.formbuilder.permissions import AccessResolver
from canvass_app.formbuilder.records import ChoiceOptions, QuestionInput, Role
from canvass_app.formbuilder.services import ResponseService
from tests.fakes import InMemoryFormStore


@pytest.fixture
def store():
    return InMemoryFormStore()


@pytest.fixture
def owner(store):
    return store.add_user("owner@example.com", "Owner")


@pytest.fixture
def form(store, owner):
    form = store.create_form(owner.id, "Survey", allow_unauthenticated=True)
    store.insert_question(form.id, QuestionInput(text="Name", type="text", is_required=True), 0)
    store.insert_question(
        form.id,
        QuestionInput(text="Colour", type="radio", options=ChoiceOptions(("red", "blue"))),
        1,
    )
    return form


@pytest.fixture
def service(store):
    return ResponseService(store, AccessResolver(store, lock_toggle_requires_owner=False))


def _ids(store, form):
    return [q.id for q in store.list_questions(form.id)]


class TestSubmit:
    def test_anonymous_submission(self, store, form, service):
        name, colour = _ids(store, form)
        response = service.submit(
            form.id,
            None,
            [
                {"questionId": name, "answerText": "Ada"},
                {"questionId": colour, "answerOptions": ["red"]},
            ],
        )
        assert response.user_id is None
        assert [(a.question_id, a.answer_text, a.answer_options) for a in response.answers] == [
            (name, "Ada", None),
            (colour, None, ["red"]),
        ]

    def test_authenticated_submission_records_user(self, store, form, service, owner):
        (name, _) = _ids(store, form)
        response = service.submit(form.id, owner.id, [{"questionId": name, "answerText": "Ada"}])
        assert response.user_id == owner.id
        assert response.user_name == "Owner"

    def test_numbers_are_stored_as_text(self, store, form, service):
        (name, _) = _ids(store, form)
        response = service.submit(form.id, None, [{"questionId": name, "answerText": 42}])
        assert response.answers[0].answer_text == "42"

    def test_locked_form_rejected_before_validation(self, store, form, service):
        store.update_form_fields(form.id, is_locked=True)
        with pytest.raises(LockedError):
            service.submit(form.id, None, "not even a list")
        assert store.responses == {}

    def test_authentication_required(self, store, form, service):
        store.update_form_fields(form.id, allow_unauthenticated=False)
        with pytest.raises(AuthRequiredError) as exc:
            service.submit(form.id, None, [])
        assert exc.value.message == "Authentication required to submit this form"

    def test_missing_form(self, service):
        with pytest.raises(NotFoundError):
            service.submit(999, None, [])

    def test_required_question_missing(self, store, form, service):
        (_, colour) = _ids(store, form)
        with pytest.raises(ValidationError) as exc:
            service.submit(form.id, None, [{"questionId": colour, "answerOptions": ["red"]}])
        assert exc.value.details == ['Question "Name" is required']
        assert store.responses == {}

    def test_whitespace_does_not_satisfy_required(self, store, form, service):
        (name, _) = _ids(store, form)
        with pytest.raises(ValidationError):
            service.submit(form.id, None, [{"questionId": name, "answerText": "   "}])

    def test_unknown_question_rejected(self, store, form, service):
        (name, _) = _ids(store, form)
        with pytest.raises(ValidationError) as exc:
            service.submit(
                form.id,
                None,
                [{"questionId": name, "answerText": "Ada"}, {"questionId": 4040, "answerText": "x"}],
            )
        assert exc.value.details == ["Answer references unknown question 4040"]

    def test_malformed_answers(self, store, form, service):
        (name, _) = _ids(store, form)
        with pytest.raises(ValidationError) as exc:
            service.submit(
                form.id,
                None,
                ["oops", {"answerText": "x"}, {"questionId": name, "answerText": {"a": 1}}],
            )
        assert exc.value.details == [
            "Answer 1 is malformed",
            "Answer 2 has no question id",
            "Answer 3 text must be a string",
            'Question "Name" is required',
        ]

    def test_option_values_must_be_a_list_of_scalars(self, store, form, service):
        name, colour = _ids(store, form)
        with pytest.raises(ValidationError) as exc:
            service.submit(
                form.id,
                None,
                [
                    {"questionId": colour, "answerOptions": {"bogus": 1}},
                    {"questionId": colour, "answerOptions": [["red"]]},
                    {"questionId": name, "answerOptions": True},
                ],
            )
        assert exc.value.details == [
            "Answer 1 options must be a list",
            "Answer 2 options must be a list",
            "Answer 3 options must be a list",
            'Question "Name" is required',
        ]
        assert store.responses == {}

    def test_numeric_options_are_stored_as_text(self, store, form, service):
        name, colour = _ids(store, form)
        response = service.submit(
            form.id,
            None,
            [
                {"questionId": name, "answerText": "Ada"},
                {"questionId": colour, "answerOptions": (1, "red")},
            ],
        )
        assert response.answers[1].answer_options == ["1", "red"]

    def test_answers_must_be_a_list(self, form, service):
        with pytest.raises(ValidationError) as exc:
            service.submit(form.id, None, {"questionId": 1})
        assert exc.value.message == "Answers must be a list"


class TestReading:
    def test_viewer_can_list(self, store, form, service, owner):
        viewer = store.add_user("viewer@example.com")
        store.upsert_collaborator(form.id, viewer.id, Role.VIEWER)
        (name, _) = _ids(store, form)
        service.submit(form.id, None, [{"questionId": name, "answerText": "Ada"}])

        responses, questions = service.list_responses(form.id, viewer.id)

        assert len(responses) == 1
        assert [q.text for q in questions] == ["Name", "Colour"]

    def test_outsider_denied(self, store, form, service):
        outsider = store.add_user("outsider@example.com")
        with pytest.raises(AccessDeniedError):
            service.list_responses(form.id, outsider.id)
        with pytest.raises(AuthRequiredError):
            service.stats(form.id, None)

    def test_response_from_another_form_is_not_found(self, store, form, service, owner):
        other = store.create_form(owner.id, "Other", allow_unauthenticated=True)
        foreign = service.submit(other.id, None, [])
        with pytest.raises(NotFoundError) as exc:
            service.get_response(form.id, foreign.id, owner.id)
        assert exc.value.message == "Response not found"

    def test_get_response(self, store, form, service, owner):
        (name, _) = _ids(store, form)
        submitted = service.submit(form.id, None, [{"questionId": name, "answerText": "Ada"}])
        response, questions = service.get_response(form.id, submitted.id, owner.id)
        assert response.id == submitted.id
        assert len(questions) == 2

    def test_stats(self, store, form, service, owner):
        (name, _) = _ids(store, form)
        service.submit(form.id, None, [{"questionId": name, "answerText": "Ada"}])
        stats = service.stats(form.id, owner.id)
        assert stats.total_responses == 1
        assert stats.average_completion_rate == 50.0
