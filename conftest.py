import pytest
from django.core.cache import cache

TEST_PASSWORD = "test-pass-123"


@pytest.fixture(autouse=True)
def _clear_cache():
    # rate limit counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def auth_hdr():
    """Build an Authorization header carrying a fresh access token for a user."""
    from rest_framework_simplejwt.tokens import RefreshToken

    def _hdr(user) -> dict:
        token = RefreshToken.for_user(user).access_token
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}

    return _hdr


@pytest.fixture
def make_user(db):
    from django.contrib.auth import get_user_model

    User = get_user_model()

    def _make(email: str, name: str | None = None, password: str = TEST_PASSWORD):
        return User.objects.create_user(
            email=email, password=password, name=name or email.split("@")[0].title()
        )

    return _make


@pytest.fixture
def users(make_user):
    owner = make_user("owner@example.com", "Olive Owner")
    editor = make_user("editor@example.com", "Eddie Editor")
    viewer = make_user("viewer@example.com", "Vera Viewer")
    outsider = make_user("outsider@example.com", "Otto Outsider")
    return owner, editor, viewer, outsider


@pytest.fixture
def form_with_questions(users):
    """Owner's form with a required text question and an optional radio
    question, shared with the editor and the viewer."""
    from canvass_app.formbuilder.models import Collaborator, Form, Question

    owner, editor, viewer, _ = users
    form = Form.objects.create(title="Team survey", description="Quarterly", created_by=owner)
    q1 = Question.objects.create(
        form=form, text="Your name", type="text", is_required=True, order_index=0
    )
    q2 = Question.objects.create(
        form=form, text="Favourite", type="radio", options=["a", "b"], order_index=1
    )
    Collaborator.objects.create(form=form, user=editor, role=Collaborator.Role.EDITOR)
    Collaborator.objects.create(form=form, user=viewer, role=Collaborator.Role.VIEWER)
    return form, [q1, q2]
