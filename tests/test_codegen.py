import json
import shutil
from datetime import datetime
from pathlib import Path

import pytest

from app.rsm.codegen.fields import FieldSpec, Relation, ResourceSpec, SpecError, enum_values, permission_attr, spec_from_dict
from app.rsm.codegen.naming import camel_case, humanize, kebab_case, pascal_case, pluralize, singularize, snake_case
from app.rsm.codegen.prompts import ask_yes_no, prompt_resource
from app.rsm.codegen.render import (
    GeneratedFile,
    existing_modules,
    register_module,
    registered_modules,
    render_resource,
    write_files,
)
from scripts.endpoint_generator import main

ROOT = Path(__file__).resolve().parents[1]

GOALS = {
    "name": "therapy_goals",
    "permission": "ASSIGN_STUDENTS",
    "fields": [
        {"name": "studentId", "type": "uuid", "relation": "Student"},
        {"name": "goalType", "type": "enum", "values": "speech, motor skills"},
        {"name": "description", "type": "string"},
        {"name": "targetDate", "type": "date", "required": False},
        {"name": "met", "type": "boolean", "required": False},
    ],
}


def _scripted(answers):
    answers = list(answers)
    return lambda _question: answers.pop(0)


@pytest.fixture()
def repo(tmp_path):
    """Minimal copy of the repo layout the generator writes into."""
    modules_init = tmp_path / "app" / "rsm" / "modules" / "__init__.py"
    modules_init.parent.mkdir(parents=True)
    shutil.copy(ROOT / "app" / "rsm" / "modules" / "__init__.py", modules_init)
    shutil.copy(ROOT / "alembic.ini", tmp_path / "alembic.ini")
    shutil.copytree(ROOT / "migrations", tmp_path / "migrations", ignore=shutil.ignore_patterns("__pycache__"))
    return tmp_path


def test_naming():
    assert snake_case("therapyGoals") == "therapy_goals"
    assert kebab_case("therapy_goals") == "therapy-goals"
    assert pascal_case("therapy goal") == "TherapyGoal"
    assert camel_case("student id") == "studentId"
    assert humanize("maxTravelDistance") == "Max travel distance"
    assert pluralize("therapy_goal") == "therapy_goals"
    assert pluralize("category") == "categories"
    assert pluralize("class") == "classes"
    assert singularize("therapy_services") == "therapy_service"
    assert singularize("accommodations") == "accommodation"
    assert singularize("people") == "person"


def test_enum_values_and_permission_lookup():
    assert enum_values("speech, motor skills, , SPEECH") == ("SPEECH", "MOTOR_SKILLS")
    assert permission_attr("view_result") == "VIEW_RESULTS"
    assert permission_attr("VIEW_RESULTS") == "VIEW_RESULTS"
    assert permission_attr("FLY") is None


def test_relation_resolution():
    assert Relation.resolve("Student") == Relation("Student", "app.rsm.modules.students.models", "students")
    assert Relation.resolve("users") == Relation("User", "app.rsm.models", "users")
    assert Relation.resolve("therapy_service").table == "therapy_services"


def test_spec_from_dict():
    spec = spec_from_dict(GOALS, ("students",))
    assert (spec.module, spec.slug, spec.model, spec.entity) == ("therapy_goals", "therapy-goals", "TherapyGoal", "THERAPY_GOAL")
    assert spec.permission_key == "ASSIGN_STUDENTS"
    assert spec.forbidden_role == "THERAPIST"
    assert spec.allowed_role == "ADMIN"
    assert spec.crud_testable is False
    assert spec.sa_types == ["Boolean", "DateTime", "ForeignKey", "String"]
    assert spec.listing_imports == [
        "ListParams",
        "ListSpec",
        "boolean",
        "contains",
        "iso_date",
        "one_of",
        "ordered",
        "paginate",
        "same_day",
        "text",
        "uuid_value",
    ]
    goal_type = spec.fields[1]
    assert goal_type.constant == "GOAL_TYPES"
    assert goal_type.validator == 'v.choice("goalType", GOAL_TYPES)'
    assert spec.fields[3].validator == 'v.datetime("targetDate", nullable=True, default=None)'
    assert spec.fields[0].admin_field() == 'Field("studentId", "Student", "select", choices=model_choices(Student))'


def test_spec_from_dict_collects_every_error():
    with pytest.raises(SpecError) as exc:
        spec_from_dict(
            {
                "name": "users",
                "permission": "FLY",
                "fields": [
                    {"name": "id", "type": "string"},
                    {"name": "kind", "type": "enum"},
                    {"name": "kind", "type": "string"},
                    {"name": "size", "type": "huge"},
                    {"name": "goalId", "type": "uuid", "relation": "Goal"},
                ],
            },
            ("users",),
        )
    assert exc.value.errors == [
        "name: module 'users' already exists",
        "permission: unknown permission 'FLY'",
        "fields.id: 'id' is generated automatically",
        "fields.kind: enum fields need at least one value",
        "fields.kind: duplicate field",
        "fields.size: type must be one of string, number, boolean, date, uuid, enum",
        "fields.goalId: unknown model 'Goal'",
    ]


def test_spec_rejects_core_tables_and_empty_fields():
    with pytest.raises(SpecError) as exc:
        spec_from_dict({"name": "activity_logs", "permission": "MANAGE_USERS", "fields": []})
    assert exc.value.errors == ["name: table 'activity_logs' already exists", "fields: at least one field is required"]


def test_spec_overwrite_allows_existing_module():
    spec = spec_from_dict({**GOALS, "name": "students"}, ("students",), overwrite=True)
    assert spec.module == "students"


def test_render_resource_outputs_valid_python():
    spec = spec_from_dict(GOALS, ("students",))
    files = render_resource(spec, revision="abc123def456", down_revision="3a7c1e9d2b40", create_date=datetime(2024, 9, 1))
    paths = [f.path for f in files]
    assert paths == [
        "app/rsm/modules/therapy_goals/models.py",
        "app/rsm/modules/therapy_goals/service.py",
        "app/rsm/modules/therapy_goals/api.py",
        "app/rsm/modules/therapy_goals/admin.py",
        "tests/test_therapy_goals_api.py",
        "migrations/versions/abc123def456_create_therapy_goals_table.py",
    ]
    for f in files:
        compile(f.content, f.path, "exec")

    by_name = {f.template: f.content for f in files}
    assert 'GOAL_TYPES = ("SPEECH", "MOTOR_SKILLS")' in by_name["service.py.j2"]
    assert "from app.rsm.modules.students.models import Student" in by_name["service.py.j2"]
    assert 'raise NotFound("STUDENT")' in by_name["service.py.j2"]
    # validation runs through _check; no separate validate_* helper is generated
    assert "def validate_" not in by_name["service.py.j2"]
    assert 'URL_PREFIX = "/therapy-goals"' in by_name["api.py.j2"]
    assert "@require_permission(Permission.ASSIGN_STUDENTS)" in by_name["api.py.j2"]
    assert 'bp = Blueprint("therapy_goals_admin", __name__)' in by_name["admin.py.j2"]
    assert 'student_id: Mapped[str] = mapped_column(ForeignKey("students.id"), nullable=False)' in by_name["models.py.j2"]
    assert 'down_revision: Union[str, Sequence[str], None] = "3a7c1e9d2b40"' in by_name["migration.py.j2"]
    assert 'op.create_index("idx_therapy_goals_student_id", "therapy_goals", ["student_id"])' in by_name["migration.py.j2"]
    assert "def test_therapy_goals_list_forbidden_for_therapist" in by_name["test_api.py.j2"]
    # a required Student reference cannot be satisfied by the logged-in user alone
    assert "crud_round_trip" not in by_name["test_api.py.j2"]


def test_render_single_value_enum_and_crud_test():
    spec = ResourceSpec(
        name="notes",
        permission="VIEW_REPORTS",
        fields=[
            FieldSpec("authorId", "uuid", relation=Relation.resolve("User")),
            FieldSpec("body", "string"),
            FieldSpec("visibility", "enum", enum_values=("PRIVATE",)),
            FieldSpec("score", "number", required=False),
        ],
    )
    files = {f.template: f.content for f in render_resource(spec, revision="0123456789ab", down_revision=None)}
    for content in files.values():
        compile(content, "<generated>", "exec")
    assert 'VISIBILITIES = ("PRIVATE",)' in files["service.py.j2"]
    assert "down_revision: Union[str, Sequence[str], None] = None" in files["migration.py.j2"]
    test_module = files["test_api.py.j2"]
    assert "def test_note_crud_round_trip" in test_module
    assert '"authorId": user_id,' in test_module
    assert 'json={"body": "Updated body"}' in test_module


def test_register_module_is_idempotent(repo):
    assert "therapy_goals" not in registered_modules(repo)
    assert register_module(repo, "therapy_goals") is True
    assert register_module(repo, "therapy_goals") is False
    modules = registered_modules(repo)
    assert modules[0] == "schools"
    assert modules[-1] == "therapy_goals"
    assert modules.count("therapy_goals") == 1
    source = (repo / "app" / "rsm" / "modules" / "__init__.py").read_text()
    assert '    "therapy_goals",\n)' in source
    assert "def api_modules()" in source


def test_existing_modules_includes_directories(repo):
    (repo / "app" / "rsm" / "modules" / "sessions").mkdir()
    assert "sessions" in existing_modules(repo)
    assert "students" in existing_modules(repo)


def test_write_files_refuses_to_overwrite(tmp_path):
    files = [GeneratedFile("pkg/a.py", "A = 1\n")]
    write_files(tmp_path, files)
    with pytest.raises(FileExistsError) as exc:
        write_files(tmp_path, [GeneratedFile("pkg/a.py", "A = 2\n")])
    assert "pkg/a.py" in str(exc.value)
    assert (tmp_path / "pkg" / "a.py").read_text() == "A = 1\n"

    write_files(tmp_path, [GeneratedFile("pkg/a.py", "A = 2\n")], force=True)
    assert (tmp_path / "pkg" / "a.py").read_text() == "A = 2\n"


def test_ask_yes_no_repeats_until_answered():
    assert ask_yes_no(_scripted(["maybe", "Y"]), "Continue?") is True
    assert ask_yes_no(_scripted([""]), "Continue?", default=True) is True
    assert ask_yes_no(_scripted(["no"]), "Continue?", default=True) is False


def test_prompt_resource():
    said = []
    ask = _scripted(
        [
            "users",  # taken
            "therapy_goals",
            "assign_students",
            "student id",
            "",  # type defaults to uuid for *Id
            "",  # required
            "",  # related model defaults to Student
            "id",  # reserved
            "goal type",
            "color",  # not a type
            "enum",
            "n",
            "",  # no values yet
            "speech, motor",
            "",  # done
        ]
    )
    spec = prompt_resource(("users", "students"), ask=ask, say=said.append)

    assert spec.name == "therapy_goals"
    assert spec.permission == "ASSIGN_STUDENTS"
    student, goal = spec.fields
    assert (student.name, student.type, student.required) == ("studentId", "uuid", True)
    assert student.relation.class_name == "Student"
    assert (goal.name, goal.type, goal.required, goal.enum_values) == ("goalType", "enum", False, ("SPEECH", "MOTOR"))
    assert "name: module 'users' already exists" in said
    assert "'id' is generated automatically." in said
    assert "An enum needs at least one value." in said
    assert any(line.startswith("Type must be one of") for line in said)


def test_prompt_resource_needs_a_field():
    said = []
    ask = _scripted(["goals", "", "", "title", "", "", ""])
    spec = prompt_resource((), ask=ask, say=said.append)
    assert "Add at least one field." in said
    assert spec.permission == "MANAGE_USERS"
    assert [f.name for f in spec.fields] == ["title"]


def test_generator_dry_run(repo, tmp_path, capsys):
    spec_file = tmp_path / "goals.json"
    spec_file.write_text(json.dumps(GOALS))

    assert main(["--spec", str(spec_file), "--dry-run", "--root", str(repo)]) == 0
    out = capsys.readouterr().out
    assert "Would generate TherapyGoal (therapy-goals, permission ASSIGN_STUDENTS):" in out
    assert "create app/rsm/modules/therapy_goals/service.py" in out
    assert "register 'therapy_goals' in RESOURCE_MODULES" in out
    assert not (repo / "app" / "rsm" / "modules" / "therapy_goals").exists()


def test_generator_writes_and_registers(repo, tmp_path, capsys):
    spec_file = tmp_path / "goals.json"
    spec_file.write_text(json.dumps(GOALS))

    assert main(["--spec", str(spec_file), "--no-migrate", "--root", str(repo)]) == 0
    out = capsys.readouterr().out
    assert "Done. REST: /therapy-goals  Admin: /admin/therapy-goals/" in out

    module_dir = repo / "app" / "rsm" / "modules" / "therapy_goals"
    assert sorted(p.name for p in module_dir.iterdir()) == ["admin.py", "api.py", "models.py", "service.py"]
    assert (repo / "tests" / "test_therapy_goals_api.py").exists()
    assert registered_modules(repo)[-1] == "therapy_goals"
    revisions = list((repo / "migrations" / "versions").glob("*_create_therapy_goals_table.py"))
    assert len(revisions) == 1
    assert 'down_revision: Union[str, Sequence[str], None] = "3a7c1e9d2b40"' in revisions[0].read_text()

    # the module now exists, so a second run is refused
    assert main(["--spec", str(spec_file), "--no-migrate", "--root", str(repo)]) == 2
    assert "already exists" in capsys.readouterr().err


def test_generator_bad_spec_file(repo, tmp_path, capsys):
    spec_file = tmp_path / "broken.json"
    spec_file.write_text("{not json")
    assert main(["--spec", str(spec_file), "--root", str(repo)]) == 2
    assert "Could not read" in capsys.readouterr().err
