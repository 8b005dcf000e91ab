import pytest
from pydantic import ValidationError

from app.schemas.auth import ChangePasswordRequest, LoginRequest
from app.schemas.comment import CommentCreate
from app.schemas.project import ProjectCreate, ProjectUpdate
from app.schemas.upload import PresignedUrlRequest
from app.utils.text import slugify


def _project(**overrides):
    data = {
        "title": "Valid Title",
        "shortDescription": "Short",
        "content": "Body",
        "techStack": ["Python"],
    }
    data.update(overrides)
    return data


def test_project_accepts_camel_case_and_trims():
    project = ProjectCreate.model_validate(
        _project(title="  Valid Title  ", techStack=[" Python ", ""], demoUrl=" https://demo.dev/app ")
    )
    assert project.title == "Valid Title"
    assert project.tech_stack == ["Python"]
    assert project.demo_url == "https://demo.dev/app"


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "ab"},
        {"techStack": ["", " "]},
        {"demoUrl": "ftp://files.example.com"},
        {"githubUrl": "http://example.com:99999/x"},
        {"githubUrl": "https://"},
        {"title": "     "},
        {"slug": "Not A Slug"},
        {"content": ""},
    ],
)
def test_project_rejects_invalid_fields(overrides):
    with pytest.raises(ValidationError):
        ProjectCreate.model_validate(_project(**overrides))


def test_project_update_tracks_provided_fields_only():
    update = ProjectUpdate.model_validate(
        {"title": "New title", "githubUrl": None, "content": None, "expectedVersion": 2}
    )
    assert update.project_fields() == {"title": "New title", "github_url": None}
    assert update.expected_version == 2


def test_password_strength_rules():
    ChangePasswordRequest(old_password="x", new_password="Str0ng!pass")
    for weak in ("short1!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSymbol123"):
        with pytest.raises(ValidationError):
            ChangePasswordRequest(old_password="x", new_password=weak)


def test_login_email_normalised():
    assert LoginRequest(email=" Admin@Portfolio.com ", password="p").email == "admin@portfolio.com"
    with pytest.raises(ValidationError):
        LoginRequest(email="nope", password="p")


def test_comment_bounds():
    assert CommentCreate(content="ok", projectId="p").project_id == "p"
    with pytest.raises(ValidationError):
        CommentCreate(content="x" * 501, projectId="p")


def test_presigned_content_type_format():
    with pytest.raises(ValidationError):
        PresignedUrlRequest(filename="a.png", contentType="IMAGE/PNG", size=1)
    with pytest.raises(ValidationError):
        PresignedUrlRequest(filename="a.png", contentType="image/png", size=0)


@pytest.mark.parametrize(
    "title, slug",
    [
        ("Hello, World!", "hello-world"),
        ("  Café   Project ", "cafe-project"),
        ("---", ""),
    ],
)
def test_slugify(title, slug):
    assert slugify(title) == slug


def test_project_blank_urls_become_none():
    project = ProjectCreate.model_validate(_project(githubUrl="   ", demoUrl=""))
    assert project.github_url is None
    assert project.demo_url is None


@pytest.mark.parametrize(
    "payload",
    [
        {"title": "     "},
        {"shortDescription": "   "},
        {"content": "\n\t"},
        {"demoUrl": "http://example.com:99999/x"},
    ],
)
def test_project_update_rejects_blank_text_and_bad_urls(payload):
    with pytest.raises(ValidationError):
        ProjectUpdate.model_validate(payload)


def test_project_update_trims_text():
    update = ProjectUpdate.model_validate({"title": "  Renamed  "})
    assert update.project_fields() == {"title": "Renamed"}
