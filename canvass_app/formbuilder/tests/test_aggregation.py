import pytest

from canvass_app.core.errors import StorageError
from canvass_app.formbuilder.records import AnswerInput, AnswerRecord, QuestionInput, Role
from canvass_app.formbuilder.services.aggregation import (
    ResponseAggregator,
    compute_response_completion,
    is_answered,
    round_half_up,
)
from tests.fakes import InMemoryFormStore


def _answer(text=None, options=None):
    return AnswerRecord(id=1, response_id=1, question_id=1, answer_text=text, answer_options=options)


@pytest.mark.parametrize(
    "text,options,expected",
    [
        (None, None, False),
        ("", None, False),
        ("   ", None, False),
        (None, [], False),
        ("", [], False),
        ("hello", None, True),
        (None, ["x"], True),
        (None, "x", True),
    ],
)
def test_is_answered(text, options, expected):
    assert is_answered(_answer(text, options)) is expected


def test_missing_answer_is_not_answered():
    assert is_answered(None) is False


@pytest.mark.parametrize(
    "value,places,expected",
    [(62.5, 0, 63.0), (33.35, 1, 33.4), (66.66666, 1, 66.7), (0.0, 1, 0.0)],
)
def test_round_half_up(value, places, expected):
    assert round_half_up(value, places) == expected


@pytest.fixture
def store():
    return InMemoryFormStore()


@pytest.fixture
def form(store):
    owner = store.add_user("owner@example.com", "Owner")
    return store.create_form(owner.id, "Survey")


def _questions(store, form, count):
    return [
        store.insert_question(form.id, QuestionInput(text=f"Q{i}", type="text"), i)
        for i in range(count)
    ]


def _respond(store, form, *answers, user_id=None):
    return store.create_response(
        form.id, user_id, [AnswerInput(qid, text, options) for qid, text, options in answers]
    )


class TestResponseCompletion:
    def test_half_answered(self, store, form):
        q1, q2, q3, q4 = _questions(store, form, 4)
        response = _respond(store, form, (q1.id, "a", None), (q3.id, None, ["x"]), (q4.id, "", []))
        completion = compute_response_completion([q1, q2, q3, q4], response)
        assert completion.answered_count == 2
        assert completion.total_questions == 4
        assert completion.completion_rate == 50.0

    def test_no_questions(self, store, form):
        response = _respond(store, form)
        assert compute_response_completion([], response).completion_rate == 0

    def test_first_duplicate_wins(self, store, form):
        (q1,) = _questions(store, form, 1)
        response = _respond(store, form, (q1.id, "", None), (q1.id, "late", None))
        assert compute_response_completion([q1], response).answered_count == 0

    def test_rate_is_bounded(self, store, form):
        (q1,) = _questions(store, form, 1)
        response = _respond(store, form, (q1.id, "a", None), (q1.id, "b", None))
        completion = compute_response_completion([q1], response)
        assert completion.answered_count <= completion.total_questions
        assert 0 <= completion.completion_rate <= 100


class TestFormCompletionRate:
    def test_mean_rounded_to_whole_percent(self, store, form):
        q1, q2, q3, q4 = _questions(store, form, 4)
        _respond(store, form, (q1.id, "a", None), (q2.id, "b", None))
        _respond(store, form, (q1.id, "a", None), (q2.id, "b", None), (q3.id, "c", None))
        # mean of 50.0 and 75.0
        assert ResponseAggregator(store).compute_form_completion_rate(form.id) == 63

    def test_no_questions_or_responses(self, store, form):
        aggregator = ResponseAggregator(store)
        assert aggregator.compute_form_completion_rate(form.id) == 0
        _questions(store, form, 2)
        assert aggregator.compute_form_completion_rate(form.id) == 0

    def test_capped_at_hundred(self, store, form):
        (q1,) = _questions(store, form, 1)
        _respond(store, form, (q1.id, "a", None), (q1.id, "b", None))
        assert ResponseAggregator(store).compute_form_completion_rate(form.id) == 100


class TestFormStats:
    def test_individual_and_average(self, store, form):
        q1, q2, q3 = _questions(store, form, 3)
        member = store.add_user("member@example.com", "Member")
        _respond(store, form, (q1.id, "a", None))
        _respond(store, form, (q1.id, "a", None), (q2.id, "b", None), user_id=member.id)

        stats = ResponseAggregator(store).form_stats(form.id)

        assert stats.total_responses == 2
        assert stats.total_questions == 3
        # newest first
        assert [s.user_name for s in stats.individual_responses] == ["Member", "Anonymous"]
        assert [s.completion_rate for s in stats.individual_responses] == [66.7, 33.3]
        assert stats.average_completion_rate == 50.0

    def test_empty_form(self, store, form):
        stats = ResponseAggregator(store).form_stats(form.id)
        assert stats.total_responses == 0
        assert stats.average_completion_rate == 0.0
        assert stats.individual_responses == []


class TestDashboard:
    def test_summaries_carry_roles_and_aggregates(self, store, form):
        (q1,) = _questions(store, form, 1)
        _respond(store, form, (q1.id, "a", None))
        editor = store.add_user("editor@example.com")
        store.upsert_collaborator(form.id, editor.id, Role.EDITOR)

        (summary,) = ResponseAggregator(store).dashboard(editor.id)

        assert summary.form.id == form.id
        assert summary.role == Role.EDITOR
        assert summary.response_count == 1
        assert summary.completion_rate == 100
        assert summary.last_response is not None

    def test_one_failing_form_does_not_break_the_list(self, store, form):
        healthy = store.create_form(form.created_by, "Healthy")
        (q1,) = _questions(store, healthy, 1)
        _respond(store, healthy, (q1.id, "a", None))
        store.fail_on["count_responses"] = (StorageError("gone"), form.id)

        summaries = {s.form.id: s for s in ResponseAggregator(store).dashboard(form.created_by)}

        assert summaries[form.id].response_count == 0
        assert summaries[healthy.id].response_count == 1
        assert summaries[healthy.id].completion_rate == 100
